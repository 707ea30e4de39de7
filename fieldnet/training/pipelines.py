"""Pipeline assembly: data, classifier, trainer and run artifacts from one config."""

from __future__ import annotations

import json
import time
from copy import deepcopy
from dataclasses import replace
from pathlib import Path
from typing import Dict, Mapping, Tuple

import numpy as np
import yaml

from ..classifier import FieldClassifier
from ..config import ClassifierConfig
from ..core.types import Batch, LayerDims, RunResult
from ..data.records import load_records
from ..data.synthetic import make_blobs, make_multilabel
from ..data.utils import deterministic_split, seed_everything
from ..reporting.artifacts import write_manifest
from ..reporting.metrics import CsvSink, JsonlSink
from ..reporting.plots import PlotAdapter
from ..reporting.summary import write_summary
from ..vocab import DEFAULT_FIELD_TYPES, LabelVocabulary
from .metrics import evaluate
from .trainer import Trainer

_PRESETS: Dict[str, Mapping[str, object]] = {
    "synthetic-single-label": {
        "data": {
            "name": "blobs",
            "options": {"n": 240, "d": 8, "classes": 4, "seed": 0, "spread": 0.4},
        },
        "model": {
            "hidden": [32, 16],
            "classifier": {
                "mode": "single_label",
                "learning_rate": 0.005,
                "warmup_epochs": 2,
            },
        },
        "train": {
            "epochs": 12,
            "batch_size": 16,
            "seed": 7,
            "val_split": 0.15,
            "test_split": 0.15,
            "early_stopping_patience": 5,
            "run_dir": "runs/synthetic-single-label",
            "enable_plots": False,
        },
    },
    "synthetic-multi-label": {
        "data": {
            "name": "multilabel",
            "options": {"n": 240, "d": 8, "classes": 5, "seed": 1, "spread": 0.3},
        },
        "model": {
            "hidden": [32, 16],
            "classifier": {"mode": "multi_label", "learning_rate": 0.005},
        },
        "train": {
            "epochs": 12,
            "batch_size": 16,
            "seed": 11,
            "val_split": 0.15,
            "test_split": 0.15,
            "early_stopping_patience": 5,
            "run_dir": "runs/synthetic-multi-label",
            "enable_plots": False,
        },
    },
}

_PRESET_DIR = Path(__file__).resolve().parents[2] / "configs" / "presets"
_FILE_PRESETS_CACHE: Dict[str, Mapping[str, object]] | None = None


def _read_preset_file(path: Path) -> Mapping[str, object]:
    text = path.read_text()
    suffix = path.suffix.lower()
    if suffix in {".yaml", ".yml"}:
        data = yaml.safe_load(text) or {}
    elif suffix == ".json":
        data = json.loads(text or "{}")
    else:
        raise ValueError(f"Unsupported preset file type: {path.suffix}")
    if not isinstance(data, Mapping):
        raise TypeError(f"Preset {path.name} must decode to a mapping")
    return data


def _file_presets() -> Dict[str, Mapping[str, object]]:
    global _FILE_PRESETS_CACHE
    if _FILE_PRESETS_CACHE is None:
        found: Dict[str, Mapping[str, object]] = {}
        if _PRESET_DIR.exists():
            for file in sorted(_PRESET_DIR.iterdir()):
                if file.suffix.lower() not in {".yaml", ".yml", ".json"}:
                    continue
                data = _read_preset_file(file)
                missing = {"data", "model", "train"} - set(data)
                if missing:
                    raise KeyError(
                        f"Preset {file.name} is missing required sections: {', '.join(sorted(missing))}"
                    )
                found[file.stem] = json.loads(json.dumps(data))
        _FILE_PRESETS_CACHE = found
    return {name: deepcopy(cfg) for name, cfg in _FILE_PRESETS_CACHE.items()}


def presets() -> Mapping[str, Mapping[str, object]]:
    combined: Dict[str, Mapping[str, object]] = {}
    combined.update({name: deepcopy(cfg) for name, cfg in _PRESETS.items()})
    combined.update(_file_presets())
    return combined


def load_preset(name: str) -> Mapping[str, object]:
    file_presets = _file_presets()
    if name in file_presets:
        return file_presets[name]
    try:
        return deepcopy(_PRESETS[name])
    except KeyError as exc:
        raise KeyError(f"Unknown preset: {name}") from exc


def _build_vocabulary(labels: object, classes: int) -> LabelVocabulary:
    if labels == "field_types":
        return LabelVocabulary(DEFAULT_FIELD_TYPES[:classes])
    if isinstance(labels, list):
        return LabelVocabulary(labels)
    return LabelVocabulary.anonymous(classes)


def build_dataset(
    data_cfg: Mapping[str, object],
) -> Tuple[np.ndarray, np.ndarray, LabelVocabulary, Mapping[str, object]]:
    """Return ``(inputs, targets, vocabulary, provenance)`` for a data section."""

    name = str(data_cfg.get("name", "blobs"))
    options = dict(data_cfg.get("options", {}))
    labels = options.pop("labels", None)
    if name in {"blobs", "multilabel"}:
        factory = make_blobs if name == "blobs" else make_multilabel
        x, y = factory(**options)
        vocabulary = _build_vocabulary(labels, int(options["classes"]))
        provenance = {"type": "synthetic", "name": name, **options}
        return x, y, vocabulary, provenance
    if name == "records":
        path = Path(str(options["path"]))
        vocabulary = LabelVocabulary(labels) if isinstance(labels, list) else LabelVocabulary.default()
        x, y = load_records(path, vocabulary)
        return x, y, vocabulary, {"type": "records", "name": name, "path": str(path)}
    raise ValueError(f"Unknown dataset: {name}")


def run_pipeline(config: Mapping[str, object]) -> RunResult:
    data_cfg = dict(config["data"])
    model_cfg = dict(config["model"])
    train_cfg = dict(config["train"])

    seed = int(train_cfg.get("seed", 0))
    seed_everything(seed)
    x, y, vocabulary, provenance = build_dataset(data_cfg)

    hidden = [int(h) for h in model_cfg.get("hidden", [64, 32])]
    if len(hidden) != 2:
        raise ValueError(f"Expected two hidden layer sizes, got {hidden}")
    d_in = int(model_cfg.get("d_in", x.shape[1]))
    if d_in != x.shape[1]:
        raise ValueError(f"Configured d_in={d_in} but the data has {x.shape[1]} features")
    dims = LayerDims(d_in, hidden[0], hidden[1], len(vocabulary))

    clf_config = ClassifierConfig.from_mapping(dict(model_cfg.get("classifier", {})))
    batch_size = int(train_cfg.get("batch_size", clf_config.max_batch_size))
    if batch_size > clf_config.max_batch_size:
        clf_config = replace(clf_config, max_batch_size=batch_size)
    classifier = FieldClassifier(dims, vocabulary, clf_config, rng=np.random.default_rng(seed))
    classifier.initialize()

    splits = deterministic_split(
        x.shape[0],
        val_split=float(train_cfg.get("val_split", 0.1)),
        test_split=float(train_cfg.get("test_split", 0.2)),
        seed=seed,
    )
    val = (x[splits.val], y[splits.val]) if splits.val.size else None

    run_dir = _resolve_run_dir(train_cfg, str(provenance["name"]), clf_config.mode)
    run_dir.mkdir(parents=True, exist_ok=True)

    epochs = int(train_cfg.get("epochs", 1))
    _print_startup_summary(
        dataset_name=str(provenance["name"]),
        samples=splits.sizes,
        dims=dims.as_list(),
        mode=clf_config.mode,
        loss=classifier.loss.name,
        schedule=clf_config.schedule,
        param_count=classifier.parameter_count(),
    )

    train_jsonl = JsonlSink(run_dir / "metrics_train.jsonl", split="train", seed=seed)
    val_jsonl = JsonlSink(run_dir / "metrics_val.jsonl", split="val", seed=seed)
    plots = PlotAdapter(run_dir, enable_plots=bool(train_cfg.get("enable_plots", False)))
    split_loggers = {
        "train": [train_jsonl, CsvSink(run_dir / "metrics_train.csv", split="train"), plots],
        "val": [val_jsonl, CsvSink(run_dir / "metrics_val.csv", split="val")],
    }

    patience = train_cfg.get("early_stopping_patience")
    trainer = Trainer(classifier)
    result = trainer.run(
        x[splits.train],
        y[splits.train],
        epochs,
        batch_size=batch_size,
        seed=seed,
        val=val,
        metric_names=train_cfg.get("metrics"),
        early_stopping_patience=int(patience) if patience is not None else None,
        min_delta=float(train_cfg.get("min_delta", 1e-4)),
        checkpoint_dir=run_dir / "checkpoints",
        split_loggers=split_loggers,
    )
    plots.close()

    if splits.test.size:
        test_metrics = evaluate(
            classifier, Batch(x[splits.test], y[splits.test]), train_cfg.get("metrics")
        )
        (run_dir / "metrics_test.json").write_text(json.dumps(dict(test_metrics), indent=2))

    model_path = classifier.save(run_dir / "model.json")
    safe_config = json.loads(json.dumps(config))
    safe_config["model"]["classifier"] = clf_config.to_dict()
    (run_dir / "config.json").write_text(json.dumps(safe_config, indent=2))
    manifest = write_manifest(
        run_dir / "manifest.json",
        config=safe_config,
        dataset_provenance=provenance,
    )
    summary_path = write_summary(
        train_jsonl.path, run_dir / "summary.json", tail=int(train_cfg.get("summary_tail", 32))
    )

    return replace(
        result,
        metrics_path=str(train_jsonl.path),
        manifest_path=manifest,
        summary_path=summary_path,
        model_path=str(model_path),
    )


def _resolve_run_dir(train_cfg: Mapping[str, object], dataset: str, mode: str) -> Path:
    if "run_dir" in train_cfg:
        return Path(str(train_cfg["run_dir"]))
    timestamp = time.strftime("%Y%m%d-%H%M%S")
    return Path("runs") / timestamp / dataset / mode


def _print_startup_summary(
    *,
    dataset_name: str,
    samples: Mapping[str, int],
    dims: list,
    mode: str,
    loss: str,
    schedule: str,
    param_count: int,
) -> None:
    print("=== fieldnet run ===")
    print(f"Dataset       : {dataset_name}")
    print(f"Samples       : {dict(samples)}")
    print(f"Dimensions    : {dims}")
    print(f"Mode          : {mode}")
    print(f"Loss          : {loss}")
    print(f"Schedule      : {schedule}")
    print(f"Parameters    : {param_count}")
    print("====================")


__all__ = ["build_dataset", "load_preset", "presets", "run_pipeline"]
