import json
from pathlib import Path

import pytest
import yaml

from cli.main import main


def test_cli_runs_preset(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    main(["--preset", "synthetic-multi-label", "--epochs", "1", "--seed", "3"])
    run_dir = Path("runs/synthetic-multi-label")
    assert (run_dir / "metrics_train.jsonl").exists()
    assert (run_dir / "manifest.json").exists()
    assert (run_dir / "model.json").exists()
    payload = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
    assert payload["epochs"] == 1
    config = json.loads((run_dir / "config.json").read_text())
    assert config["train"]["seed"] == 3


def test_cli_lists_presets(capsys):
    with pytest.raises(SystemExit) as excinfo:
        main(["--list-presets"])
    assert excinfo.value.code == 0
    names = capsys.readouterr().out.split()
    assert {"synthetic-single-label", "synthetic-multi-label", "field-types-blobs"} <= set(names)


def test_cli_merges_yaml_override_and_dumps_config(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    override = tmp_path / "override.yaml"
    override.write_text(
        yaml.safe_dump(
            {
                "data": {"options": {"n": 60}},
                "train": {"epochs": 1, "run_dir": str(tmp_path / "yaml-run")},
            }
        )
    )
    dump = tmp_path / "resolved.json"
    main(["--preset", "synthetic-single-label", "--config", str(override), "--dump-config", str(dump)])
    resolved = json.loads(dump.read_text())
    assert resolved["data"]["options"]["n"] == 60
    assert resolved["data"]["options"]["classes"] == 4
    assert resolved["train"]["epochs"] == 1
    assert (tmp_path / "yaml-run" / "summary.json").exists()


def test_cli_enable_plots_writes_figures(tmp_path, monkeypatch):
    pytest.importorskip("matplotlib")
    monkeypatch.chdir(tmp_path)
    main(["--preset", "synthetic-single-label", "--epochs", "2", "--enable-plots", "--run-dir", "plots"])
    assert (tmp_path / "plots" / "train_loss.png").exists()
    assert (tmp_path / "plots" / "train_accuracy.png").exists()
