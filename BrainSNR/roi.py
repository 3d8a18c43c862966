from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence, Tuple

from BrainSNR.errors import GeometryError


# (axis-1 edge, axis-2 edge) per corner; axis 3 is always the superior (far) edge.
# In the standard (LAS) voxel order the far end of axis 1 is Left and of axis 2 Anterior.
CORNER_LAYOUT: List[Tuple[str, str, str]] = [
    ("LAS", "far", "far"),
    ("LPS", "far", "near"),
    ("RPS", "near", "near"),
    ("RAS", "near", "far"),
]


@dataclass(frozen=True)
class RoiBox:
    name: str
    index: Tuple[int, int, int]
    size: Tuple[int, int, int]

    @property
    def stop(self) -> Tuple[int, int, int]:
        return tuple(i + s for i, s in zip(self.index, self.size))

    def fslroi_args(self) -> List[str]:
        """`xmin xsize ymin ysize zmin zsize` as expected by fslroi."""
        args: List[str] = []
        for i, s in zip(self.index, self.size):
            args.extend([str(int(i)), str(int(s))])
        return args


def _offset(edge: str, dim: int, margin: int) -> int:
    return dim - margin if edge == "far" else margin


def _overlap(a0: int, a1: int, b0: int, b1: int) -> bool:
    return a0 < b1 and b0 < a1


def corner_rois(dims: Sequence[int], *, size: int = 10, margin: int = 20) -> List[RoiBox]:
    """Place four `size`-voxel cubes at the superior corners of a volume.

    The far edge of an axis is at `dim - margin`, the near edge at `margin`.
    Raises GeometryError if a cube would leave the volume or if the near and
    far cubes of an in-plane axis would overlap.
    """
    if len(dims) != 3:
        raise GeometryError(f"Expected three spatial dimensions, got {tuple(dims)}.")
    dims = tuple(int(d) for d in dims)
    for axis, dim in enumerate(dims, start=1):
        if dim <= margin:
            raise GeometryError(f"dim{axis}={dim} must exceed the ROI margin of {margin} voxels.")

    for axis in (0, 1):
        near = _offset("near", dims[axis], margin)
        far = _offset("far", dims[axis], margin)
        if _overlap(near, near + size, far, far + size):
            raise GeometryError(
                f"dim{axis + 1}={dims[axis]}: near ROI [{near}, {near + size}) overlaps far ROI [{far}, {far + size})."
            )

    boxes: List[RoiBox] = []
    z = _offset("far", dims[2], margin)
    for name, edge_x, edge_y in CORNER_LAYOUT:
        index = (_offset(edge_x, dims[0], margin), _offset(edge_y, dims[1], margin), z)
        box = RoiBox(name=name, index=index, size=(size, size, size))
        for axis, (start, stop, dim) in enumerate(zip(box.index, box.stop, dims), start=1):
            if start < 0 or stop > dim:
                raise GeometryError(f"{name} ROI [{start}, {stop}) is outside dim{axis}={dim}.")
        boxes.append(box)
    return boxes
