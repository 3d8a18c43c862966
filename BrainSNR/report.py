from __future__ import annotations

from pathlib import Path
from typing import Optional

from tqdm import tqdm


def format_value(value: float, decimals: Optional[int] = None) -> str:
    if decimals is None:
        return repr(float(value))
    return f"{float(value):.{int(decimals)}f}"


class Reporter:
    """Append-only run log that echoes every recorded line to the console.

    The first write of a run truncates whatever log a previous run left in the
    (possibly reused) workspace; later writes append.
    """

    def __init__(self, log_path: Path, decimals: Optional[int] = None) -> None:
        self.log_path = Path(log_path)
        self.decimals = decimals
        self._started = False

    def record(self, line: str = "") -> None:
        mode = "a" if self._started else "w"
        self.log_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.log_path, mode, encoding="utf-8") as handle:
            handle.write(f"{line}\n")
        self._started = True
        tqdm.write(line)

    def record_value(self, label: str, value: float) -> None:
        self.record(f"{label}: {self.fmt(value)}")

    def status(self, message: str) -> None:
        tqdm.write(f"[snr] {message}")

    def fmt(self, value: float) -> str:
        return format_value(value, self.decimals)
