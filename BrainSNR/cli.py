from __future__ import annotations

import argparse
from pathlib import Path
import sys
from typing import List, Optional, Sequence

from BrainSNR.config import SNRConfig, load_config
from BrainSNR.errors import InputNotFoundError, SNRError, UsageError
from BrainSNR.pipeline import run_snr


DESCRIPTION = """\
Compute SNR from a 3D image of the brain using two methods:
    SNR = mean_wm / mean_noise
    SNR = 0.655 * mean_wm / sd_noise
(Zhang et al., 2018, doi: 10.1109/ACCESS.2018.2796632)

mean_wm is the mean signal in white matter; mean_noise and sd_noise are the
mean and SD of noise intensity in four cubic ROIs placed in the superior
corners of the input 3D image."""

EPILOG = """\
example:
    compute-snr-brain -i t1.nii.gz

exit status: 0 success, 2 usage error, 3 input not found,
4 external tool failure, 5 invalid ROI geometry or zero noise.

WARNING: results in an existing snr_<file_name>/ directory are overwritten.
REQUIREMENTS: FMRIB Software Library (FSL)"""


class _ArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> None:  # type: ignore[override]
        raise UsageError(message)


def build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        prog="compute-snr-brain",
        description=DESCRIPTION,
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("-i", dest="file_name", type=Path, metavar="<file_name>", help="Input 3D brain image (.nii.gz)")
    parser.add_argument("-c", "--config", type=Path, default=None, help="Optional YAML configuration")
    return parser


def _load_cfg(path: Optional[Path]) -> SNRConfig:
    if path is None:
        return load_config(None)
    if not path.is_file():
        raise UsageError(f"Configuration file {path} does not exist.")
    try:
        return load_config(path)
    except (TypeError, ValueError) as e:
        raise UsageError(f"Invalid configuration {path}: {e}") from e


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args_list: List[str] = list(sys.argv[1:] if argv is None else argv)
    try:
        if not args_list:
            raise UsageError("No input arguments given.")
        args = parser.parse_args(args_list)
        if args.file_name is None:
            raise UsageError("Option -i requires <file_name>.")
        if not args.file_name.is_file():
            raise InputNotFoundError(args.file_name)
        cfg = _load_cfg(args.config)
        result = run_snr(args.file_name, cfg)
    except UsageError as e:
        print(e, file=sys.stderr)
        parser.print_help(sys.stderr)
        return e.exit_code
    except SNRError as e:
        print(f"[snr] {e}", file=sys.stderr)
        return e.exit_code
    print(f"[snr] Results written to {result.log_file}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
