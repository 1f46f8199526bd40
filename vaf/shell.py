"""
Shell command execution.
"""

import logging
import subprocess
from pathlib import Path
from typing import Optional, Tuple, Union

from .errors import VafError

logger = logging.getLogger(__name__)


class CommandFailed(VafError):
    """A shell command exited non-zero or could not be started."""

    def __init__(self, command: str, returncode: Optional[int], stdout: str = "", stderr: str = ""):
        self.command = command
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        reason = (stderr or stdout).strip().splitlines()
        tail = reason[-1] if reason else f"exit code {returncode}"
        super().__init__(f"Command failed: {command} ({tail})", {"returncode": returncode})


class ShellRunner:
    """Runs shell command strings and captures their output."""

    def __init__(self, timeout: Optional[float] = None):
        self.timeout = timeout

    def run(self, command: str, cwd: Union[str, Path], input: Optional[str] = None) -> Tuple[str, str]:
        """
        Run a command through the shell.

        Args:
            command: Command line, interpreted by the shell
            cwd: Working directory
            input: Optional text sent to stdin

        Returns:
            Tuple of (stdout, stderr)

        Raises:
            CommandFailed: If the command exits non-zero or cannot be run
        """
        logger.debug(f"Running: {command} (cwd={cwd})")
        try:
            proc = subprocess.run(
                command,
                shell=True,
                cwd=str(cwd),
                input=input,
                capture_output=True,
                text=True,
                check=True,
                timeout=self.timeout,
            )
        except subprocess.CalledProcessError as e:
            raise CommandFailed(command, e.returncode, e.stdout or "", e.stderr or "")
        except subprocess.TimeoutExpired:
            raise CommandFailed(command, None, stderr=f"timed out after {self.timeout}s")
        except OSError as e:
            raise CommandFailed(command, None, stderr=str(e))
        return proc.stdout, proc.stderr
