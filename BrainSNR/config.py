from __future__ import annotations

from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional

import yaml


TOOLKIT_ALIASES: Dict[str, str] = {
    "fsl": "fsl",
    "shell": "fsl",
    "sitk": "sitk",
    "simpleitk": "sitk",
    "itk": "sitk",
}

# FSLOUTPUTTYPE -> file extension written by FSL tools.
OUTPUT_EXTENSIONS: Dict[str, str] = {
    "NIFTI_GZ": ".nii.gz",
    "NIFTI": ".nii",
}

BOOL_OPTIONS = ("backup_existing", "bet_bias_cleanup", "progress")


@dataclass
class SNRConfig:
    """Settings for a single SNR run.

    Defaults reproduce the reference protocol: BET with f=0.3 and bias/neck
    cleanup, FAST partial-volume map 2 (white matter) thresholded at 0.5,
    10-voxel cubes placed 20 voxels from the superior corners, and the 0.655
    Rician correction factor (Zhang et al., 2018).
    """

    output_root: Path = Path(".")
    backup_existing: bool = False
    toolkit: str = "fsl"
    bet_frac: float = 0.3
    bet_bias_cleanup: bool = True
    wm_pve_index: int = 2
    wm_threshold: float = 0.5
    roi_size: int = 10
    roi_margin: int = 20
    rician_factor: float = 0.655
    decimals: Optional[int] = None
    progress: bool = True
    fsl_output_type: str = "NIFTI_GZ"

    @classmethod
    def from_dict(cls, data: Any) -> "SNRConfig":
        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise TypeError("SNR configuration must be a mapping.")
        known = {f.name for f in fields(cls)}
        merged: Dict[str, Any] = {}
        for raw_key, value in data.items():
            key = str(raw_key).strip()
            if key not in known:
                print(f"[config] Ignoring unknown option '{raw_key}'.")
                continue
            merged[key] = value
        for key in BOOL_OPTIONS:
            if key in merged and not isinstance(merged[key], bool):
                raise ValueError(f"{key} must be true or false, got {merged[key]!r}.")
        cfg = cls(**merged)
        cfg.output_root = Path(cfg.output_root)
        cfg.toolkit = _normalize_toolkit(cfg.toolkit)
        cfg.bet_frac = float(cfg.bet_frac)
        cfg.wm_threshold = float(cfg.wm_threshold)
        cfg.rician_factor = float(cfg.rician_factor)
        cfg.wm_pve_index = int(cfg.wm_pve_index)
        cfg.roi_size = int(cfg.roi_size)
        cfg.roi_margin = int(cfg.roi_margin)
        cfg.fsl_output_type = str(cfg.fsl_output_type).strip().upper()
        if cfg.fsl_output_type not in OUTPUT_EXTENSIONS:
            raise ValueError(f"fsl_output_type must be one of {sorted(OUTPUT_EXTENSIONS)}.")
        if cfg.decimals is not None:
            cfg.decimals = int(cfg.decimals)
        if not 0.0 < cfg.bet_frac < 1.0:
            raise ValueError("bet_frac must be within (0, 1).")
        if cfg.wm_pve_index not in (0, 1, 2):
            raise ValueError("wm_pve_index must be 0, 1 or 2 (FAST partial-volume map index).")
        if cfg.roi_size < 1 or cfg.roi_margin < 1:
            raise ValueError("roi_size and roi_margin must be positive.")
        return cfg

    @property
    def output_extension(self) -> str:
        return OUTPUT_EXTENSIONS[self.fsl_output_type]


def _normalize_toolkit(name: str) -> str:
    key = str(name).strip().lower()
    if key not in TOOLKIT_ALIASES:
        raise ValueError(f"Unknown toolkit '{name}'. Known toolkits: {sorted(set(TOOLKIT_ALIASES.values()))}")
    return TOOLKIT_ALIASES[key]


def load_config(config_path: Optional[Path]) -> SNRConfig:
    """Load configuration from YAML, or return defaults when no path is given."""
    if config_path is None:
        return SNRConfig()
    with open(config_path, "r", encoding="utf-8") as handle:
        try:
            data = yaml.safe_load(handle) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Malformed YAML in {config_path}: {e}") from e
    return SNRConfig.from_dict(data)
