"""Signal and noise estimators.

Two SNR definitions are computed from the same white-matter signal:

1. ``SNR = mean_wm / mean_noise``
2. ``SNR = 0.655 * mean_wm / sd_noise``, where 0.655 compensates for the
   Rician distribution of background noise in magnitude MR images
   (Z. Zhang et al., "Can Signal-to-Noise Ratio Perform as a Baseline
   Indicator for Medical Image Quality Assessment", IEEE Access, 2018,
   doi:10.1109/ACCESS.2018.2796632).

Noise statistics are averaged per ROI (mean of the four ROI statistics), not
pooled over all ROI voxels.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, Mapping, Optional

import numpy as np

from BrainSNR.errors import DivisionByZeroError
from BrainSNR.report import Reporter
from BrainSNR.toolkit import Toolkit


RICIAN_FACTOR = 0.655
BASIC = "basic"
RICIAN = "rician"


@dataclass(frozen=True)
class NoiseEstimate:
    method: str
    per_roi: Dict[str, float]
    aggregate: float
    snr: float


def mean_of_stats(values: Iterable[float]) -> float:
    vals = np.asarray(list(values), dtype=np.float64)
    if vals.size == 0:
        raise ValueError("At least one ROI statistic is required.")
    return float(vals.sum() / vals.size)


def basic_snr(mean_wm: float, mean_noise: float) -> float:
    if float(mean_noise) == 0.0:
        raise DivisionByZeroError(BASIC, "mean_noise")
    return float(mean_wm) / float(mean_noise)


def rician_snr(mean_wm: float, sd_noise: float, factor: float = RICIAN_FACTOR) -> float:
    if float(sd_noise) == 0.0:
        raise DivisionByZeroError(RICIAN, "sd_noise")
    return float(factor) * float(mean_wm) / float(sd_noise)


def estimate_signal(toolkit: Toolkit, brain: Path, wm_mask: Path, reporter: Optional[Reporter] = None) -> float:
    """Mean intensity of the brain-extracted volume inside the white-matter mask."""
    mean_wm = float(toolkit.mean(brain, mask=wm_mask))
    if reporter is not None:
        reporter.record()
        reporter.record_value("Mean signal from WM", mean_wm)
    return mean_wm


def estimate_noise_basic(
    toolkit: Toolkit,
    rois: Mapping[str, Path],
    mean_wm: float,
    reporter: Optional[Reporter] = None,
) -> NoiseEstimate:
    if reporter is not None:
        reporter.record()
        reporter.record("Method 1 (SNR = mean_wm / mean_noise):")
    per_roi: Dict[str, float] = {}
    for name, path in rois.items():
        per_roi[name] = float(toolkit.mean(path))
        if reporter is not None:
            reporter.record_value(f"Mean noise for {name} ROI", per_roi[name])
    mean_noise = mean_of_stats(per_roi.values())
    if reporter is not None:
        reporter.record_value("Mean noise across all ROI", mean_noise)
    snr = basic_snr(mean_wm, mean_noise)
    if reporter is not None:
        reporter.record_value("SNR", snr)
    return NoiseEstimate(method=BASIC, per_roi=per_roi, aggregate=mean_noise, snr=snr)


def estimate_noise_rician(
    toolkit: Toolkit,
    rois: Mapping[str, Path],
    mean_wm: float,
    reporter: Optional[Reporter] = None,
    *,
    factor: float = RICIAN_FACTOR,
) -> NoiseEstimate:
    if reporter is not None:
        reporter.record()
        reporter.record(f"Method 2 (SNR = {factor} * mean_wm / sd_noise):")
    per_roi: Dict[str, float] = {}
    for name, path in rois.items():
        per_roi[name] = float(toolkit.std(path))
        if reporter is not None:
            reporter.record_value(f"SD of noise for {name} ROI", per_roi[name])
    sd_noise = mean_of_stats(per_roi.values())
    if reporter is not None:
        reporter.record_value("SD of noise across all ROI", sd_noise)
    snr = rician_snr(mean_wm, sd_noise, factor)
    if reporter is not None:
        reporter.record_value("SNR", snr)
    return NoiseEstimate(method=RICIAN, per_roi=per_roi, aggregate=sd_noise, snr=snr)
