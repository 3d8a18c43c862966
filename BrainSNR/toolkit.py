from __future__ import annotations

import os
from pathlib import Path
import shutil
import subprocess
from typing import List, Optional, Sequence, Tuple

from BrainSNR.config import OUTPUT_EXTENSIONS
from BrainSNR.errors import ExternalToolError
from BrainSNR.roi import RoiBox


class Toolkit:
    """Operations the SNR pipeline delegates to a neuroimaging toolkit.

    Volume transforms write a new image file; statistics return a float.
    """

    def image_info(self, image: Path) -> str:
        raise NotImplementedError

    def dimensions(self, image: Path) -> Tuple[int, int, int]:
        raise NotImplementedError

    def reorient_to_std(self, image: Path, out: Path) -> Path:
        raise NotImplementedError

    def brain_extract(self, image: Path, out: Path, *, frac: float, bias_cleanup: bool) -> Path:
        raise NotImplementedError

    def segment_tissues(self, brain: Path, out_base: Path) -> List[Path]:
        """Return partial-volume maps ordered CSF, GM, WM."""
        raise NotImplementedError

    def threshold_binarize(self, image: Path, out: Path, *, threshold: float) -> Path:
        raise NotImplementedError

    def mean(self, image: Path, mask: Optional[Path] = None) -> float:
        raise NotImplementedError

    def std(self, image: Path, mask: Optional[Path] = None) -> float:
        raise NotImplementedError

    def extract_roi(self, image: Path, out: Path, box: RoiBox) -> Path:
        raise NotImplementedError


def _parse_float(stage: str, text: str) -> float:
    tokens = text.split()
    try:
        return float(tokens[0])
    except (IndexError, ValueError):
        raise ExternalToolError(stage, 0, text, message=f"[{stage}] could not parse a number from: {text.strip()!r}")


class FSLToolkit(Toolkit):
    """FMRIB Software Library command-line tools, called one blocking process at a time."""

    def __init__(self, output_type: str = "NIFTI_GZ", fsl_dir: Optional[str] = None) -> None:
        self.output_type = output_type
        self.fsl_dir = fsl_dir if fsl_dir is not None else os.environ.get("FSLDIR")

    @property
    def extension(self) -> str:
        return OUTPUT_EXTENSIONS.get(self.output_type, ".nii.gz")

    def _require(self, name: str, stage: str) -> str:
        exe = shutil.which(name)
        if not exe and self.fsl_dir:
            candidate = Path(self.fsl_dir) / "bin" / name
            if candidate.is_file():
                exe = str(candidate)
        if not exe:
            raise ExternalToolError(
                stage,
                None,
                message=(
                    f"[{stage}] {name} not found on PATH. Install FSL "
                    "(https://fsl.fmrib.ox.ac.uk/fsl/fslwiki/FslInstallation) and set FSLDIR, "
                    "or use `toolkit: sitk` for the in-process statistics."
                ),
            )
        return exe

    def _run(self, stage: str, cmd: Sequence[str]) -> str:
        exe = self._require(cmd[0], stage)
        env = dict(os.environ)
        env["FSLOUTPUTTYPE"] = self.output_type
        try:
            proc = subprocess.run(
                [exe, *[str(c) for c in cmd[1:]]],
                check=True,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                env=env,
            )
        except subprocess.CalledProcessError as e:
            output = (e.stdout or "") + (e.stderr or "")
            raise ExternalToolError(stage, e.returncode, output) from e
        return proc.stdout or ""

    def image_info(self, image: Path) -> str:
        return self._run("fslinfo", ["fslinfo", image]).rstrip("\n")

    def dimensions(self, image: Path) -> Tuple[int, int, int]:
        dims = []
        for axis in (1, 2, 3):
            out = self._run("fslval", ["fslval", image, f"dim{axis}"])
            dims.append(int(round(_parse_float("fslval", out))))
        return dims[0], dims[1], dims[2]

    def reorient_to_std(self, image: Path, out: Path) -> Path:
        self._run("fslreorient2std", ["fslreorient2std", image, out])
        return out

    def brain_extract(self, image: Path, out: Path, *, frac: float, bias_cleanup: bool) -> Path:
        cmd = ["bet", image, out]
        if bias_cleanup:
            cmd.append("-B")
        cmd.extend(["-f", f"{float(frac)}"])
        self._run("bet", cmd)
        return out

    def segment_tissues(self, brain: Path, out_base: Path) -> List[Path]:
        self._run("fast", ["fast", "-B", "-o", out_base, brain])
        return [Path(f"{out_base}_pve_{i}{self.extension}") for i in range(3)]

    def threshold_binarize(self, image: Path, out: Path, *, threshold: float) -> Path:
        self._run("fslmaths", ["fslmaths", image, "-thr", f"{float(threshold)}", "-bin", out])
        return out

    def _stats(self, image: Path, mask: Optional[Path], flag: str) -> float:
        cmd: List = ["fslstats", image]
        if mask is not None:
            cmd.extend(["-k", mask])
        cmd.append(flag)
        return _parse_float("fslstats", self._run("fslstats", cmd))

    def mean(self, image: Path, mask: Optional[Path] = None) -> float:
        return self._stats(image, mask, "-M")

    def std(self, image: Path, mask: Optional[Path] = None) -> float:
        return self._stats(image, mask, "-S")

    def extract_roi(self, image: Path, out: Path, box: RoiBox) -> Path:
        self._run("fslroi", ["fslroi", image, out, *box.fslroi_args()])
        return out


def make_toolkit(name: str = "fsl", *, output_type: str = "NIFTI_GZ") -> Toolkit:
    if name == "fsl":
        return FSLToolkit(output_type=output_type)
    if name == "sitk":
        from BrainSNR.itk_toolkit import SimpleITKToolkit

        return SimpleITKToolkit(output_type=output_type)
    raise ValueError(f"Unknown toolkit: {name}")
