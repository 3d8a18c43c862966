from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
import shutil
from typing import Dict, Optional

from BrainSNR.errors import InputNotFoundError, UsageError


NIFTI_SUFFIXES = (".nii.gz", ".nii")
ROI_NAMES = ("LAS", "LPS", "RPS", "RAS")


def derive_base_name(path: Path) -> str:
    """Strip the NIfTI suffix (``.nii.gz`` expected, ``.nii`` tolerated)."""
    name = Path(path).name
    for suf in NIFTI_SUFFIXES:
        if name.endswith(suf) and len(name) > len(suf):
            return name[: -len(suf)]
    return name


def _input_suffix(path: Path) -> str:
    name = Path(path).name
    for suf in NIFTI_SUFFIXES:
        if name.endswith(suf) and len(name) > len(suf):
            return suf
    raise UsageError(f"Input {path} is not a NIfTI image (expected .nii.gz or .nii).")


@dataclass(frozen=True)
class VolumeNames:
    """Deterministic file names of every artifact of a run, inside the workspace."""

    workspace: Path
    base: str
    input_suffix: str = ".nii.gz"
    ext: str = ".nii.gz"

    def _path(self, suffix: str) -> Path:
        return self.workspace / f"{self.base}{suffix}{self.ext}"

    @property
    def staged_input(self) -> Path:
        return self.workspace / f"{self.base}{self.input_suffix}"

    @property
    def reoriented(self) -> Path:
        return self._path("_reorient")

    @property
    def brain(self) -> Path:
        return self._path("_brain")

    def pve(self, index: int) -> Path:
        return self._path(f"_brain_pve_{int(index)}")

    def wm_mask(self, index: int = 2) -> Path:
        return self._path(f"_brain_pve_{int(index)}_bin")

    def roi(self, name: str) -> Path:
        return self._path(f"_roi_{name}")

    def rois(self) -> Dict[str, Path]:
        return {name: self.roi(name) for name in ROI_NAMES}

    @property
    def log_file(self) -> Path:
        return self.workspace / f"snr_{self.base}.txt"


def workspace_dir(base: str, output_root: Path) -> Path:
    return Path(output_root) / f"snr_{base}"


def _next_backup(path: Path) -> Path:
    n = 1
    while True:
        candidate = path.with_name(f"{path.name}.bak{n}")
        if not candidate.exists():
            return candidate
        n += 1


def prepare_workspace(
    input_path: Path,
    *,
    output_root: Path = Path("."),
    backup_existing: bool = False,
    base: Optional[str] = None,
    ext: str = ".nii.gz",
) -> VolumeNames:
    """Create (or reuse) ``snr_<base>`` and stage the input image into it.

    An existing workspace is reused and its files are overwritten by the new
    run unless `backup_existing` is set, in which case it is first renamed to
    ``snr_<base>.bak<N>``. Derived volumes use `ext`, the extension FSL
    writes for the configured output type.
    """
    input_path = Path(input_path)
    if not input_path.is_file():
        raise InputNotFoundError(input_path)
    input_suffix = _input_suffix(input_path)
    base = base or derive_base_name(input_path)
    workspace = workspace_dir(base, output_root).resolve()

    if workspace.exists() and backup_existing:
        backup = _next_backup(workspace)
        workspace.rename(backup)
        print(f"[workspace] Moved previous results to {backup}")
    workspace.mkdir(parents=True, exist_ok=True)

    names = VolumeNames(workspace=workspace, base=base, input_suffix=input_suffix, ext=ext)
    if input_path.resolve() != names.staged_input:
        shutil.copyfile(input_path, names.staged_input)
    return names
