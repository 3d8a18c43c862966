from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional, Tuple

import numpy as np
import SimpleITK as sitk

from BrainSNR.errors import ExternalToolError
from BrainSNR.roi import RoiBox
from BrainSNR.toolkit import FSLToolkit


# FSL's standard (MNI152) voxel order: i -> Left, j -> Anterior, k -> Superior.
STANDARD_ORIENTATION = "LAS"


def _ensure_uint8_mask(mask: sitk.Image, reference: sitk.Image) -> sitk.Image:
    if (
        mask.GetSize() != reference.GetSize()
        or mask.GetSpacing() != reference.GetSpacing()
        or mask.GetOrigin() != reference.GetOrigin()
        or mask.GetDirection() != reference.GetDirection()
    ):
        resampler = sitk.ResampleImageFilter()
        resampler.SetReferenceImage(reference)
        resampler.SetInterpolator(sitk.sitkNearestNeighbor)
        mask = resampler.Execute(mask)
    mask = sitk.Cast(mask != 0, sitk.sitkUInt8)
    mask.CopyInformation(reference)
    return mask


def _nonzero_voxels(image: sitk.Image, mask: Optional[sitk.Image] = None) -> np.ndarray:
    """Voxel values fslstats -M/-S would use: inside the mask and non-zero."""
    arr = sitk.GetArrayFromImage(sitk.Cast(image, sitk.sitkFloat64))
    if mask is not None:
        mask_arr = sitk.GetArrayFromImage(_ensure_uint8_mask(mask, image)).astype(bool)
        arr = arr[mask_arr]
    else:
        arr = arr.ravel()
    return arr[arr != 0]


def nonzero_mean(image: sitk.Image, mask: Optional[sitk.Image] = None) -> float:
    values = _nonzero_voxels(image, mask)
    if values.size == 0:
        return 0.0
    return float(np.mean(values))


def nonzero_std(image: sitk.Image, mask: Optional[sitk.Image] = None) -> float:
    values = _nonzero_voxels(image, mask)
    if values.size < 2:
        return 0.0
    return float(np.std(values, ddof=1))


def describe_image(image: sitk.Image) -> str:
    """fslinfo-style summary: data type, dimensions and voxel sizes."""
    size = list(image.GetSize())
    spacing = list(image.GetSpacing())
    while len(size) < 4:
        size.append(1)
        spacing.append(1.0)
    lines = [f"data_type\t{image.GetPixelIDTypeAsString()}"]
    lines += [f"dim{i + 1}\t{int(s)}" for i, s in enumerate(size)]
    lines += [f"pixdim{i + 1}\t{float(p):.6f}" for i, p in enumerate(spacing)]
    return "\n".join(lines)


@contextmanager
def _sitk_errors(stage: str) -> Iterator[None]:
    """Report SimpleITK read/write/filter failures as tool failures of `stage`."""
    try:
        yield
    except RuntimeError as e:
        raise ExternalToolError(stage, None, str(e), message=f"[{stage}] SimpleITK failed: {e}") from e


class SimpleITKToolkit(FSLToolkit):
    """BET and FAST through FSL; metadata, reorientation, masks, statistics and ROIs with SimpleITK."""

    def image_info(self, image: Path) -> str:
        with _sitk_errors("image_info"):
            return describe_image(sitk.ReadImage(str(image)))

    def dimensions(self, image: Path) -> Tuple[int, int, int]:
        with _sitk_errors("dimensions"):
            reader = sitk.ImageFileReader()
            reader.SetFileName(str(image))
            reader.ReadImageInformation()
            size = reader.GetSize()
        return int(size[0]), int(size[1]), int(size[2])

    def reorient_to_std(self, image: Path, out: Path) -> Path:
        with _sitk_errors("reorient"):
            img = sitk.ReadImage(str(image))
            sitk.WriteImage(sitk.DICOMOrient(img, STANDARD_ORIENTATION), str(out), True)
        return out

    def threshold_binarize(self, image: Path, out: Path, *, threshold: float) -> Path:
        with _sitk_errors("threshold"):
            img = sitk.Cast(sitk.ReadImage(str(image)), sitk.sitkFloat32)
            arr = sitk.GetArrayFromImage(img)
            binary = ((arr >= float(threshold)) & (arr != 0)).astype(np.uint8)
            mask = sitk.GetImageFromArray(binary)
            mask.CopyInformation(img)
            sitk.WriteImage(mask, str(out), True)
        return out

    def mean(self, image: Path, mask: Optional[Path] = None) -> float:
        with _sitk_errors("stats"):
            mask_img = sitk.ReadImage(str(mask)) if mask is not None else None
            return nonzero_mean(sitk.ReadImage(str(image)), mask_img)

    def std(self, image: Path, mask: Optional[Path] = None) -> float:
        with _sitk_errors("stats"):
            mask_img = sitk.ReadImage(str(mask)) if mask is not None else None
            return nonzero_std(sitk.ReadImage(str(image)), mask_img)

    def extract_roi(self, image: Path, out: Path, box: RoiBox) -> Path:
        with _sitk_errors("roi"):
            img = sitk.ReadImage(str(image))
            roi = sitk.RegionOfInterest(img, size=[int(s) for s in box.size], index=[int(i) for i in box.index])
            sitk.WriteImage(roi, str(out), True)
        return out
