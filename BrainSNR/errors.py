from __future__ import annotations

from typing import Optional


class SNRError(Exception):
    """Base class for errors that end an SNR run."""

    exit_code = 1


class UsageError(SNRError):
    exit_code = 2


class InputNotFoundError(SNRError, FileNotFoundError):
    exit_code = 3

    def __init__(self, path) -> None:
        super().__init__(f"Input file {path} does not exist.")
        self.path = path


class ExternalToolError(SNRError, RuntimeError):
    """A delegated toolkit call failed (non-zero exit or missing binary)."""

    exit_code = 4

    def __init__(self, stage: str, returncode: Optional[int], output: str = "", message: Optional[str] = None) -> None:
        if message is None:
            message = f"[{stage}] external tool failed with exit status {returncode}"
            if output.strip():
                message += f":\n{output.strip()}"
        super().__init__(message)
        self.stage = stage
        self.returncode = returncode
        self.output = output


class GeometryError(SNRError, ValueError):
    exit_code = 5


class DivisionByZeroError(SNRError, ZeroDivisionError):
    exit_code = 5

    def __init__(self, method: str, denominator: str) -> None:
        super().__init__(f"{method}: {denominator} is zero; SNR is undefined.")
        self.method = method
        self.denominator = denominator
