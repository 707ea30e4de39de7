import pytest

from fieldnet.config import ClassifierConfig


def test_presets_match_model_generations():
    single = ClassifierConfig.single_label()
    assert single.dropout == (0.3, 0.2)
    assert single.uses_normalization
    assert single.schedule == "warmup_cosine"
    multi = ClassifierConfig.multi_label()
    assert multi.dropout == (0.0, 0.0)
    assert not multi.uses_normalization
    assert multi.learning_rate == 1e-3


def test_from_mapping_starts_from_mode_preset():
    cfg = ClassifierConfig.from_mapping({"mode": "multi_label", "dropout": [0.1, 0.0]})
    assert cfg.normalization == "none"
    assert cfg.dropout == (0.1, 0.0)
    with pytest.raises(KeyError):
        ClassifierConfig.from_mapping({"hidden_units": 3})


@pytest.mark.parametrize(
    "overrides",
    [
        {"mode": "regression"},
        {"dropout": (0.3,)},
        {"dropout": (1.0, 0.0)},
        {"threshold": 1.5},
        {"max_batch_size": 0},
        {"clip_norm": 0.0},
        {"norm_backward": "exact"},
    ],
)
def test_invalid_values_raise(overrides):
    with pytest.raises(ValueError):
        ClassifierConfig(**overrides)


def test_multi_label_rejects_normalization():
    with pytest.raises(ValueError):
        ClassifierConfig.multi_label(normalization="running_stats")


def test_loss_options_and_round_trip():
    cfg = ClassifierConfig.multi_label(loss="weighted_bce", pos_weight=3.0, loss_reduction="mean")
    assert cfg.loss_options() == {"pos_weight": 3.0, "neg_weight": 1.0, "reduction": "mean"}
    assert ClassifierConfig.single_label().loss_options() == {}
    assert ClassifierConfig.from_mapping(cfg.to_dict()) == cfg
    assert cfg.with_overrides(threshold=0.5).threshold == 0.5
