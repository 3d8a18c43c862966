from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from tqdm import tqdm

from BrainSNR.config import SNRConfig
from BrainSNR.errors import DivisionByZeroError
from BrainSNR.report import Reporter
from BrainSNR.roi import RoiBox, corner_rois
from BrainSNR.snr import NoiseEstimate, estimate_noise_basic, estimate_noise_rician, estimate_signal
from BrainSNR.toolkit import Toolkit, make_toolkit
from BrainSNR.workspace import VolumeNames, derive_base_name, prepare_workspace


SNR_STEP_ORDER: List[str] = [
    "workspace",
    "image_info",
    "reorient",
    "brain_extraction",
    "segmentation",
    "wm_mask",
    "signal",
    "rois",
    "noise_basic",
    "noise_rician",
]


@dataclass
class SNRResult:
    base: str
    workspace: Path
    log_file: Path
    mean_wm: float
    basic: Optional[NoiseEstimate] = None
    rician: Optional[NoiseEstimate] = None


@dataclass
class RunContext:
    """State handed from one step to the next during a single run."""

    cfg: SNRConfig
    input_path: Path
    base: str
    names: Optional[VolumeNames] = None
    reporter: Optional[Reporter] = None
    pve_maps: List[Path] = field(default_factory=list)
    dims: Optional[Tuple[int, int, int]] = None
    mean_wm: Optional[float] = None
    rois: List[RoiBox] = field(default_factory=list)
    roi_files: Dict[str, Path] = field(default_factory=dict)
    basic: Optional[NoiseEstimate] = None
    rician: Optional[NoiseEstimate] = None
    errors: List[DivisionByZeroError] = field(default_factory=list)

    def result(self) -> SNRResult:
        if self.names is None or self.mean_wm is None:
            raise RuntimeError("Run stopped before the white-matter signal was measured.")
        return SNRResult(
            base=self.base,
            workspace=self.names.workspace,
            log_file=self.names.log_file,
            mean_wm=self.mean_wm,
            basic=self.basic,
            rician=self.rician,
        )


class SNRRunner:
    def __init__(self, cfg: Optional[SNRConfig] = None, toolkit: Optional[Toolkit] = None) -> None:
        self.cfg = cfg or SNRConfig()
        self.toolkit = toolkit or make_toolkit(self.cfg.toolkit, output_type=self.cfg.fsl_output_type)

    def run(self, input_path: Path) -> SNRResult:
        """Run every step in order; the first failure aborts the run.

        The two noise estimators are independent: if one hits a zero
        denominator the other still runs, and the error is raised afterwards.
        """
        input_path = Path(input_path)
        ctx = RunContext(cfg=self.cfg, input_path=input_path, base=derive_base_name(input_path))
        steps = tqdm(SNR_STEP_ORDER, desc=f"snr_{ctx.base}", disable=not self.cfg.progress, leave=False)
        for step in steps:
            getattr(self, f"_step_{step}")(ctx)
        if ctx.errors:
            raise ctx.errors[0]
        return ctx.result()

    def _step_workspace(self, ctx: RunContext) -> None:
        ctx.names = prepare_workspace(
            ctx.input_path,
            output_root=self.cfg.output_root,
            backup_existing=self.cfg.backup_existing,
            base=ctx.base,
            ext=self.cfg.output_extension,
        )
        ctx.reporter = Reporter(ctx.names.log_file, decimals=self.cfg.decimals)

    def _step_image_info(self, ctx: RunContext) -> None:
        ctx.reporter.record(ctx.names.staged_input.name)
        ctx.reporter.record(self.toolkit.image_info(ctx.names.staged_input))
        ctx.reporter.record()

    def _step_reorient(self, ctx: RunContext) -> None:
        self.toolkit.reorient_to_std(ctx.names.staged_input, ctx.names.reoriented)

    def _step_brain_extraction(self, ctx: RunContext) -> None:
        ctx.reporter.status("Starting brain extraction...")
        self.toolkit.brain_extract(
            ctx.names.reoriented,
            ctx.names.brain,
            frac=self.cfg.bet_frac,
            bias_cleanup=self.cfg.bet_bias_cleanup,
        )

    def _step_segmentation(self, ctx: RunContext) -> None:
        ctx.reporter.status("Starting structural segmentation...")
        out_base = ctx.names.workspace / f"{ctx.base}_brain"
        ctx.pve_maps = list(self.toolkit.segment_tissues(ctx.names.brain, out_base))

    def _step_wm_mask(self, ctx: RunContext) -> None:
        ctx.reporter.status("Starting computation of SNR...")
        index = self.cfg.wm_pve_index
        self.toolkit.threshold_binarize(
            ctx.pve_maps[index],
            ctx.names.wm_mask(index),
            threshold=self.cfg.wm_threshold,
        )

    def _step_signal(self, ctx: RunContext) -> None:
        ctx.mean_wm = estimate_signal(
            self.toolkit,
            ctx.names.brain,
            ctx.names.wm_mask(self.cfg.wm_pve_index),
            ctx.reporter,
        )

    def _step_rois(self, ctx: RunContext) -> None:
        ctx.dims = self.toolkit.dimensions(ctx.names.reoriented)
        ctx.rois = corner_rois(ctx.dims, size=self.cfg.roi_size, margin=self.cfg.roi_margin)
        for box in ctx.rois:
            ctx.roi_files[box.name] = self.toolkit.extract_roi(ctx.names.reoriented, ctx.names.roi(box.name), box)

    def _step_noise_basic(self, ctx: RunContext) -> None:
        try:
            ctx.basic = estimate_noise_basic(self.toolkit, ctx.roi_files, ctx.mean_wm, ctx.reporter)
        except DivisionByZeroError as e:
            ctx.reporter.record(f"SNR: undefined ({e})")
            ctx.errors.append(e)

    def _step_noise_rician(self, ctx: RunContext) -> None:
        try:
            ctx.rician = estimate_noise_rician(
                self.toolkit,
                ctx.roi_files,
                ctx.mean_wm,
                ctx.reporter,
                factor=self.cfg.rician_factor,
            )
        except DivisionByZeroError as e:
            ctx.reporter.record(f"SNR: undefined ({e})")
            ctx.errors.append(e)


def run_snr(input_path: Path, cfg: Optional[SNRConfig] = None, toolkit: Optional[Toolkit] = None) -> SNRResult:
    return SNRRunner(cfg=cfg, toolkit=toolkit).run(input_path)
