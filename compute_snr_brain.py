#!/usr/bin/env python3
"""
Compute SNR of a 3D brain image (WM signal vs. four superior-corner noise ROIs).
Usage:
    python compute_snr_brain.py -i t1.nii.gz
"""

from BrainSNR.cli import main


if __name__ == "__main__":
    raise SystemExit(main())
