"""Brain MRI signal-to-noise ratio from white matter and background corner ROIs.

Keep imports lightweight so `BrainSNR.roi` and `BrainSNR.snr` can be used
without pulling in SimpleITK or the FSL wrappers at package import time.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from BrainSNR.config import SNRConfig as SNRConfig
    from BrainSNR.pipeline import SNRRunner as SNRRunner
    from BrainSNR.pipeline import run_snr as run_snr

__all__ = ["SNRConfig", "SNRRunner", "run_snr"]


def __getattr__(name: str) -> Any:
    if name == "SNRConfig":
        from BrainSNR.config import SNRConfig as _SNRConfig

        return _SNRConfig
    if name == "SNRRunner":
        from BrainSNR.pipeline import SNRRunner as _SNRRunner

        return _SNRRunner
    if name == "run_snr":
        from BrainSNR.pipeline import run_snr as _run_snr

        return _run_snr
    raise AttributeError(name)
