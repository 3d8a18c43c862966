from __future__ import annotations

from pathlib import Path
import subprocess
from typing import List

import pytest

from BrainSNR.errors import ExternalToolError
from BrainSNR.roi import RoiBox
from BrainSNR.toolkit import FSLToolkit, make_toolkit


class _Recorder:
    def __init__(self, stdout: str = "") -> None:
        self.stdout = stdout
        self.cmds: List[List[str]] = []
        self.envs: List[dict] = []

    def __call__(self, cmd, **kwargs):
        self.cmds.append(list(cmd))
        self.envs.append(kwargs.get("env") or {})
        assert kwargs.get("check") is True
        return subprocess.CompletedProcess(cmd, 0, stdout=self.stdout, stderr="")


@pytest.fixture
def fsl_on_path(monkeypatch) -> None:
    monkeypatch.setattr("BrainSNR.toolkit.shutil.which", lambda name: f"/opt/fsl/bin/{name}")


def test_bet_and_fast_commands(tmp_path: Path, monkeypatch, fsl_on_path) -> None:
    rec = _Recorder()
    monkeypatch.setattr("BrainSNR.toolkit.subprocess.run", rec)
    toolkit = FSLToolkit()

    toolkit.brain_extract(tmp_path / "t1_reorient.nii.gz", tmp_path / "t1_brain.nii.gz", frac=0.3, bias_cleanup=True)
    pves = toolkit.segment_tissues(tmp_path / "t1_brain.nii.gz", tmp_path / "t1_brain")

    assert rec.cmds[0] == [
        "/opt/fsl/bin/bet",
        str(tmp_path / "t1_reorient.nii.gz"),
        str(tmp_path / "t1_brain.nii.gz"),
        "-B",
        "-f",
        "0.3",
    ]
    assert rec.cmds[1] == ["/opt/fsl/bin/fast", "-B", "-o", str(tmp_path / "t1_brain"), str(tmp_path / "t1_brain.nii.gz")]
    assert pves[2] == tmp_path / "t1_brain_pve_2.nii.gz"
    assert all(env["FSLOUTPUTTYPE"] == "NIFTI_GZ" for env in rec.envs)


def test_bet_without_bias_cleanup(tmp_path: Path, monkeypatch, fsl_on_path) -> None:
    rec = _Recorder()
    monkeypatch.setattr("BrainSNR.toolkit.subprocess.run", rec)
    FSLToolkit().brain_extract(tmp_path / "a.nii.gz", tmp_path / "b.nii.gz", frac=0.5, bias_cleanup=False)
    assert "-B" not in rec.cmds[0]
    assert rec.cmds[0][-2:] == ["-f", "0.5"]


def test_threshold_and_roi_commands(tmp_path: Path, monkeypatch, fsl_on_path) -> None:
    rec = _Recorder()
    monkeypatch.setattr("BrainSNR.toolkit.subprocess.run", rec)
    toolkit = FSLToolkit()
    toolkit.threshold_binarize(tmp_path / "pve_2.nii.gz", tmp_path / "bin.nii.gz", threshold=0.5)
    toolkit.extract_roi(tmp_path / "r.nii.gz", tmp_path / "roi.nii.gz", RoiBox("LPS", (236, 20, 236), (10, 10, 10)))
    assert rec.cmds[0][1:] == [str(tmp_path / "pve_2.nii.gz"), "-thr", "0.5", "-bin", str(tmp_path / "bin.nii.gz")]
    assert rec.cmds[1][3:] == ["236", "10", "20", "10", "236", "10"]


def test_stats_parse_fslstats_output(tmp_path: Path, monkeypatch, fsl_on_path) -> None:
    rec = _Recorder(stdout="812.345678 \n")
    monkeypatch.setattr("BrainSNR.toolkit.subprocess.run", rec)
    toolkit = FSLToolkit()
    assert toolkit.mean(tmp_path / "brain.nii.gz", mask=tmp_path / "mask.nii.gz") == pytest.approx(812.345678)
    assert rec.cmds[0][1:] == [str(tmp_path / "brain.nii.gz"), "-k", str(tmp_path / "mask.nii.gz"), "-M"]
    toolkit.std(tmp_path / "roi.nii.gz")
    assert rec.cmds[1][1:] == [str(tmp_path / "roi.nii.gz"), "-S"]


def test_dimensions_use_fslval(tmp_path: Path, monkeypatch, fsl_on_path) -> None:
    rec = _Recorder(stdout="256 \n")
    monkeypatch.setattr("BrainSNR.toolkit.subprocess.run", rec)
    assert FSLToolkit().dimensions(tmp_path / "r.nii.gz") == (256, 256, 256)
    assert [c[-1] for c in rec.cmds] == ["dim1", "dim2", "dim3"]


def test_unparseable_output_is_tool_error(tmp_path: Path, monkeypatch, fsl_on_path) -> None:
    monkeypatch.setattr("BrainSNR.toolkit.subprocess.run", _Recorder(stdout="Image Exception : #22\n"))
    with pytest.raises(ExternalToolError) as exc:
        FSLToolkit().mean(tmp_path / "x.nii.gz")
    assert exc.value.stage == "fslstats"


def test_failed_command_reports_stage_and_status(tmp_path: Path, monkeypatch, fsl_on_path) -> None:
    def _fail(cmd, **kwargs):
        raise subprocess.CalledProcessError(3, cmd, output="", stderr="ERROR: could not open image")

    monkeypatch.setattr("BrainSNR.toolkit.subprocess.run", _fail)
    with pytest.raises(ExternalToolError) as exc:
        FSLToolkit().reorient_to_std(tmp_path / "a.nii.gz", tmp_path / "b.nii.gz")
    assert exc.value.stage == "fslreorient2std"
    assert exc.value.returncode == 3
    assert "could not open image" in str(exc.value)


def test_missing_binary(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setattr("BrainSNR.toolkit.shutil.which", lambda name: None)

    def _never(*args, **kwargs):
        raise AssertionError("no process should be started without a binary")

    monkeypatch.setattr("BrainSNR.toolkit.subprocess.run", _never)
    with pytest.raises(ExternalToolError) as exc:
        FSLToolkit(fsl_dir="").image_info(tmp_path / "t1.nii.gz")
    assert exc.value.returncode is None
    assert "fslinfo not found" in str(exc.value)


def test_fsldir_fallback(tmp_path: Path, monkeypatch) -> None:
    bin_dir = tmp_path / "fsl" / "bin"
    bin_dir.mkdir(parents=True)
    (bin_dir / "fslinfo").write_text("#!/bin/sh\n", encoding="utf-8")
    monkeypatch.setattr("BrainSNR.toolkit.shutil.which", lambda name: None)
    rec = _Recorder(stdout="dim1\t256\n")
    monkeypatch.setattr("BrainSNR.toolkit.subprocess.run", rec)
    assert FSLToolkit(fsl_dir=str(tmp_path / "fsl")).image_info(tmp_path / "t1.nii.gz") == "dim1\t256"
    assert rec.cmds[0][0] == str(bin_dir / "fslinfo")


def test_make_toolkit() -> None:
    assert type(make_toolkit("fsl")) is FSLToolkit
    assert make_toolkit("sitk").__class__.__name__ == "SimpleITKToolkit"
    with pytest.raises(ValueError):
        make_toolkit("afni")


def test_uncompressed_output_type(tmp_path: Path, monkeypatch, fsl_on_path) -> None:
    rec = _Recorder()
    monkeypatch.setattr("BrainSNR.toolkit.subprocess.run", rec)
    toolkit = FSLToolkit(output_type="NIFTI")

    pves = toolkit.segment_tissues(tmp_path / "t1_brain.nii", tmp_path / "t1_brain")

    assert [p.name for p in pves] == ["t1_brain_pve_0.nii", "t1_brain_pve_1.nii", "t1_brain_pve_2.nii"]
    assert rec.envs[0]["FSLOUTPUTTYPE"] == "NIFTI"
