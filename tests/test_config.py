from __future__ import annotations

from pathlib import Path

import pytest

from BrainSNR.config import SNRConfig, load_config


def test_defaults_match_reference_protocol() -> None:
    cfg = load_config(None)
    assert cfg.bet_frac == 0.3
    assert cfg.bet_bias_cleanup is True
    assert cfg.wm_pve_index == 2
    assert cfg.wm_threshold == 0.5
    assert (cfg.roi_size, cfg.roi_margin) == (10, 20)
    assert cfg.rician_factor == 0.655
    assert cfg.toolkit == "fsl"
    assert cfg.backup_existing is False


def test_load_yaml(tmp_path: Path) -> None:
    path = tmp_path / "snr.yaml"
    path.write_text(
        "output_root: results\ntoolkit: SimpleITK\ndecimals: 3\nroi_margin: 15\n",
        encoding="utf-8",
    )
    cfg = load_config(path)
    assert cfg.output_root == Path("results")
    assert cfg.toolkit == "sitk"
    assert cfg.decimals == 3
    assert cfg.roi_margin == 15


def test_empty_yaml_gives_defaults(tmp_path: Path) -> None:
    path = tmp_path / "snr.yaml"
    path.write_text("", encoding="utf-8")
    assert load_config(path) == SNRConfig()


def test_unknown_keys_are_ignored(capsys) -> None:
    cfg = SNRConfig.from_dict({"bet_frac": 0.25, "fast_classes": 4})
    assert cfg.bet_frac == 0.25
    assert "Ignoring unknown option 'fast_classes'" in capsys.readouterr().out


@pytest.mark.parametrize(
    "data",
    [
        {"bet_frac": 1.5},
        {"wm_pve_index": 3},
        {"roi_size": 0},
        {"toolkit": "afni"},
        ["bet_frac"],
    ],
)
def test_invalid_values_rejected(data) -> None:
    with pytest.raises((ValueError, TypeError)):
        SNRConfig.from_dict(data)


def test_example_config_loads() -> None:
    path = Path(__file__).resolve().parents[1] / "config" / "snr.example.yaml"
    assert load_config(path) == SNRConfig()


@pytest.mark.parametrize(
    "data",
    [
        {"bet_bias_cleanup": "false"},
        {"backup_existing": "yes"},
        {"progress": 1},
    ],
)
def test_switches_must_be_booleans(data) -> None:
    with pytest.raises(ValueError, match="must be true or false"):
        SNRConfig.from_dict(data)


def test_yaml_booleans_load(tmp_path: Path) -> None:
    path = tmp_path / "snr.yaml"
    path.write_text("bet_bias_cleanup: false\nbackup_existing: true\n", encoding="utf-8")
    cfg = load_config(path)
    assert cfg.bet_bias_cleanup is False
    assert cfg.backup_existing is True


def test_output_type_selects_extension() -> None:
    assert SNRConfig().output_extension == ".nii.gz"
    cfg = SNRConfig.from_dict({"fsl_output_type": "nifti"})
    assert cfg.fsl_output_type == "NIFTI"
    assert cfg.output_extension == ".nii"
    with pytest.raises(ValueError, match="fsl_output_type"):
        SNRConfig.from_dict({"fsl_output_type": "ANALYZE"})


def test_malformed_yaml_is_value_error(tmp_path: Path) -> None:
    path = tmp_path / "snr.yaml"
    path.write_text("bet_frac: [0.3\n", encoding="utf-8")
    with pytest.raises(ValueError, match="Malformed YAML"):
        load_config(path)
