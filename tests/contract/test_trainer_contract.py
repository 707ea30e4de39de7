import json
from pathlib import Path

import numpy as np

from fieldnet import ClassifierConfig, FieldClassifier, LayerDims
from fieldnet.data import make_blobs
from fieldnet.training import Trainer, pipelines


def _config(run_dir, **train):
    config = {
        "data": {
            "name": "blobs",
            "options": {"n": 80, "d": 4, "classes": 3, "seed": 0, "spread": 0.3},
        },
        "model": {
            "hidden": [8, 6],
            "classifier": {"mode": "single_label", "learning_rate": 0.01, "warmup_epochs": 1},
        },
        "train": {
            "epochs": 3,
            "batch_size": 8,
            "seed": 11,
            "val_split": 0.2,
            "test_split": 0.2,
            "run_dir": str(run_dir),
            "enable_plots": False,
        },
    }
    config["train"].update(train)
    return config


def test_pipeline_produces_artifacts(tmp_path):
    config = _config(tmp_path / "run")
    result = pipelines.run_pipeline(config)
    run_dir = Path(config["train"]["run_dir"])

    assert result.epochs == 3
    assert Path(result.metrics_path).exists()
    for name in (
        "metrics_train.csv",
        "metrics_val.jsonl",
        "metrics_val.csv",
        "metrics_test.json",
        "config.json",
        "model.json",
        "checkpoints/best.json",
        "checkpoints/last.json",
    ):
        assert (run_dir / name).exists(), name

    manifest = json.loads(Path(result.manifest_path).read_text())
    assert manifest["config"]["train"]["seed"] == 11
    assert manifest["dataset"]["type"] == "synthetic"
    assert manifest["model_format_version"] == 1

    metrics = [json.loads(line) for line in Path(result.metrics_path).read_text().splitlines() if line]
    assert [m["epoch"] for m in metrics] == [1, 2, 3]
    assert all(m["split"] == "train" and "sha" in m and "loss" in m for m in metrics)

    summary = json.loads(Path(result.summary_path).read_text())
    assert summary["records"] == 3
    assert "loss" in summary["metrics"]

    model = json.loads(Path(result.model_path).read_text())
    assert model["layer_dims"] == [4, 8, 6, 3]


def test_pipeline_is_deterministic(tmp_path):
    first = pipelines.run_pipeline(_config(tmp_path / "a"))
    second = pipelines.run_pipeline(_config(tmp_path / "b"))
    assert Path(first.metrics_path).read_text() == Path(second.metrics_path).read_text()
    assert Path(first.summary_path).read_bytes() == Path(second.summary_path).read_bytes()
    assert Path(first.model_path).read_text() == Path(second.model_path).read_text()


def test_multi_label_pipeline(tmp_path):
    config = _config(tmp_path / "multi", epochs=2)
    config["data"] = {"name": "multilabel", "options": {"n": 60, "d": 4, "classes": 3, "seed": 1}}
    config["model"]["classifier"] = {"mode": "multi_label", "loss": "weighted_bce", "pos_weight": 3.0}
    result = pipelines.run_pipeline(config)
    saved = json.loads((tmp_path / "multi" / "config.json").read_text())
    assert saved["model"]["classifier"]["normalization"] == "none"
    assert result.epochs == 2


def test_trainer_stops_early_and_restores_best(tmp_path):
    x, y = make_blobs(40, 3, 2, seed=0)
    config = ClassifierConfig.single_label(
        dropout=(0.0, 0.0), normalization="none", schedule="constant", learning_rate=0.0
    )
    clf = FieldClassifier(LayerDims(3, 4, 4, 2), config=config, seed=0)
    clf.initialize()
    initial = clf.export_model()
    seen = []
    trainer = Trainer(clf, callbacks=[type("Capture", (), {"on_epoch": lambda self, e, m: seen.append(e)})()])
    result = trainer.run(
        x[:30],
        y[:30],
        10,
        batch_size=8,
        seed=0,
        val=(x[30:], y[30:]),
        early_stopping_patience=2,
        checkpoint_dir=tmp_path,
    )
    assert result.stopped_early
    assert result.best_epoch == 1
    assert result.epochs == 3
    assert (tmp_path / "best.json").exists()
    assert (tmp_path / "last.json").exists()
    assert clf.export_model() == initial
    assert seen == [1, 1, 2, 2, 3, 3]


def test_trainer_caps_batches_at_classifier_limit():
    x, y = make_blobs(50, 2, 2, seed=1)
    clf = FieldClassifier(LayerDims(2, 4, 4, 2), config=ClassifierConfig.single_label(max_batch_size=8))
    result = Trainer(clf).run(x, y, 1, batch_size=64, seed=0)
    assert result.epochs == 1
    assert np.isfinite(result.best_val_loss)
