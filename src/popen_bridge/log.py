"""Timestamped, leveled diagnostics on stderr."""

import sys
from dataclasses import dataclass
from datetime import datetime

QUIET = 0
GENERAL = 1
TRANSFER = 2
DETAIL = 3


def _timestamp() -> str:
    return datetime.now().strftime("%H:%M:%S")


def _emit(line: str) -> None:
    # stdout may be carrying child output
    print(f"[{_timestamp()}] {line}", file=sys.stderr, flush=True)


@dataclass
class Log:
    """Leveled message sink.

    0 - quiet
    1 - general messages
    2 - 1 + information on each transfer
    3 - 2 + extra information (poll results, descriptors, output dumps)
    """

    verbose: int = QUIET

    def enabled(self, level: int) -> bool:
        return self.verbose >= level

    def log(self, level: int, msg: str) -> None:
        if self.enabled(level):
            _emit(msg)

    def error(self, msg: str) -> None:
        _emit(f"ERROR: {msg}")

    def syserror(self, msg: str, exc: OSError) -> None:
        """Like error(), with the OS error text appended."""
        reason = exc.strerror or str(exc)
        _emit(f"ERROR: {msg} ({reason})")
