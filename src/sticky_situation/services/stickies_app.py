"""Process control for Stickies.app.

Stickies only rereads its bundles and state file at launch, so after the
filesystem side has been rewritten the app has to be restarted.
"""

import logging
import subprocess
import time
from typing import List

from sticky_situation.exceptions import AppControlError

logger = logging.getLogger(__name__)


class StickiesApp:
    """Query, launch and restart the Stickies application."""

    def __init__(
        self,
        app_name: str = "Stickies",
        quit_delay: float = 0.5,
        timeout: int = 30,
    ) -> None:
        self._app_name = app_name
        self._quit_delay = quit_delay
        self._timeout = timeout

    def _run(self, args: List[str], check: bool = True) -> subprocess.CompletedProcess:
        """Run a command, turning every failure mode into AppControlError."""
        try:
            result = subprocess.run(
                args,
                check=False,
                capture_output=True,
                text=True,
                timeout=self._timeout,
            )
        except FileNotFoundError as e:
            raise AppControlError(
                f"{args[0]} is not installed or not in PATH", command=args[0]
            ) from e
        except subprocess.TimeoutExpired as e:
            raise AppControlError(
                f"Command timed out ({self._timeout}s): {' '.join(args)}",
                command=args[0],
            ) from e

        if check and result.returncode != 0:
            raise AppControlError(
                f"Command failed: {' '.join(args)}: {result.stderr.strip()}",
                command=args[0],
            )
        return result

    def is_running(self) -> bool:
        """True when a Stickies process exists."""
        return self._run(["pgrep", "-x", self._app_name], check=False).returncode == 0

    def launch(self) -> None:
        self._run(["open", "-a", self._app_name])
        logger.info(f"Launched {self._app_name}")

    def quit(self) -> None:
        self._run(["killall", self._app_name])
        logger.info(f"Stopped {self._app_name}")

    def restart(self) -> bool:
        """Restart the app if it is running, otherwise just launch it.

        Returns:
            True if a running instance was restarted, False if it was only
            launched.
        """
        if self.is_running():
            self.quit()
            # Give the app time to flush its state before relaunching
            time.sleep(self._quit_delay)
            self.launch()
            return True
        self.launch()
        return False
