from __future__ import annotations

import subprocess
from typing import BinaryIO, List, Optional, Sequence, Tuple

from .errors import SetupError


# Exit code reported when the child did not exit normally (e.g. killed by a signal).
FALLBACK_EXIT_CODE = 1


def exit_code_from_returncode(returncode: Optional[int]) -> int:
    if returncode is None or returncode < 0:
        return FALLBACK_EXIT_CODE
    return returncode


class ProcessRunner:
    """
    Owns the child process: stdin is inherited, stdout/stderr are pipes handed
    to the interleaver. `wait()` must only be called once both pipes are drained.
    """

    def __init__(self, argv: Sequence[str]):
        if not argv:
            raise SetupError(code="spawn.invalid", message="Missing command")
        self._argv: List[str] = list(argv)
        self._proc: Optional[subprocess.Popen] = None

    @property
    def argv(self) -> List[str]:
        return list(self._argv)

    @property
    def pid(self) -> Optional[int]:
        return self._proc.pid if self._proc is not None else None

    def spawn(self) -> Tuple[BinaryIO, BinaryIO]:
        """
        Start the child. Returns its (stdout, stderr) pipes as binary readers.
        """
        if self._proc is not None:
            raise SetupError(code="spawn.invalid", message="Process already spawned")
        try:
            self._proc = subprocess.Popen(
                self._argv,
                stdin=None,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise SetupError(code="spawn.not_found", message=f"Command not found: {self._argv[0]}", data={"argv": self._argv}) from e
        except (OSError, ValueError) as e:
            raise SetupError(code="spawn.failed", message=f"Failed to start command: {self._argv[0]}", data={"argv": self._argv, "error": repr(e)}) from e
        if self._proc.stdout is None or self._proc.stderr is None:
            raise SetupError(code="spawn.failed", message="Failed to capture child process output")
        return self._proc.stdout, self._proc.stderr

    def wait(self) -> int:
        if self._proc is None:
            raise SetupError(code="spawn.invalid", message="Process was never spawned")
        return exit_code_from_returncode(self._proc.wait())
