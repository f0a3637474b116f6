"""Plain-text extraction from RTF for the search index.

This is a regex stripper, not an RTF parser: control words and group
braces are dropped and whitespace is collapsed. Escaped symbols such as
``\\\\``, ``\\{`` or ``\\'e9`` are not control words: their backslashes are
kept while every brace, escaped or not, is removed. The result only feeds
full-text search, so it is left at that.
"""
import logging
import re

logger = logging.getLogger(__name__)

# Control words such as \rtf1, \ansi, \fs24 plus the space that delimits them
_CONTROL_WORD_RE = re.compile(r"\\[a-z]+[0-9]*\s*")
_WHITESPACE_RE = re.compile(r"\s+")


def extract_text(rtf: str) -> str:
    """Strip RTF markup and return the remaining text on a single line."""
    cleaned = _CONTROL_WORD_RE.sub(" ", rtf)
    cleaned = cleaned.replace("{", "").replace("}", "")
    cleaned = _WHITESPACE_RE.sub(" ", cleaned)
    return cleaned.strip()


def extract_text_from_bytes(rtf_data: bytes) -> str:
    """Decode RTF bytes as UTF-8 and extract text; undecodable input gives ''."""
    try:
        rtf = rtf_data.decode("utf-8")
    except UnicodeDecodeError:
        logger.debug("RTF payload is not valid UTF-8, indexing as empty text")
        return ""
    return extract_text(rtf)
