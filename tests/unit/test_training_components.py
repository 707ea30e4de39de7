import logging

import numpy as np
import pytest

from fieldnet.classifier import FieldClassifier
from fieldnet.config import ClassifierConfig
from fieldnet.core.types import Batch, LayerDims, ScheduleParams
from fieldnet.training.losses import REGISTRY
from fieldnet.training.loop import encode_target
from fieldnet.training.metrics import (
    accuracy,
    compute_metrics,
    default_metrics,
    evaluate,
    macro_f1,
    mean_confidence,
    top_k_accuracy,
)
from fieldnet.training.schedule import ConstantRate, WarmupCosine, make_schedule


def test_loss_registry_resolves_auto_by_mode():
    assert REGISTRY.resolve("auto", mode="single_label").name == "ce"
    assert REGISTRY.resolve("auto", mode="multi_label").name == "bce"
    assert set(REGISTRY.names()) == {"bce", "ce", "weighted_bce"}
    with pytest.raises(KeyError):
        REGISTRY.resolve("hinge", mode="single_label")
    with pytest.raises(ValueError):
        REGISTRY.resolve("auto", mode="regression")


def test_cross_entropy_error_is_probs_minus_onehot():
    probs = np.array([0.7, 0.2, 0.1])
    target = np.array([0.0, 1.0, 0.0])
    loss, error = REGISTRY.get("ce")(probs, target)
    assert loss == pytest.approx(-np.log(0.2))
    np.testing.assert_allclose(error, [0.7, -0.8, 0.1])


def test_bce_reduction_scales_error():
    probs = np.array([0.9, 0.4])
    target = np.array([1.0, 0.0])
    summed, err_sum = REGISTRY.resolve("bce", mode="multi_label", reduction="sum")(probs, target)
    mean, err_mean = REGISTRY.resolve("bce", mode="multi_label", reduction="mean")(probs, target)
    assert summed == pytest.approx(-np.log(0.9) - np.log(0.6))
    assert mean == pytest.approx(summed / 2)
    np.testing.assert_allclose(err_sum, [-0.1, 0.4])
    np.testing.assert_allclose(err_mean, err_sum / 2)


def test_weighted_bce_gradient_matches_finite_differences():
    from fieldnet.core.activations import sigmoid

    loss = REGISTRY.resolve(
        "weighted_bce", mode="multi_label", pos_weight=3.0, neg_weight=1.0, reduction="sum"
    )
    logits = np.array([0.3, -1.2, 2.0])
    target = np.array([1.0, 0.0, 1.0])
    _, error = loss(sigmoid(logits), target)
    eps = 1e-6
    numeric = np.zeros(3)
    for i in range(3):
        bump = np.zeros(3)
        bump[i] = eps
        numeric[i] = (
            loss(sigmoid(logits + bump), target)[0] - loss(sigmoid(logits - bump), target)[0]
        ) / (2 * eps)
    np.testing.assert_allclose(error, numeric, atol=1e-6)


def test_warmup_cosine_schedule():
    schedule = WarmupCosine(base_lr=1e-3, warmup_epochs=5)
    assert schedule(ScheduleParams(0, 50)) == pytest.approx(2e-4)
    assert schedule(ScheduleParams(4, 50)) == pytest.approx(1e-3)
    assert schedule(ScheduleParams(5, 50)) == pytest.approx(1e-3)
    assert schedule(ScheduleParams(50, 50)) == pytest.approx(0.0, abs=1e-12)
    rates = [schedule(ScheduleParams(e, 50)) for e in range(5, 50)]
    assert all(a >= b for a, b in zip(rates, rates[1:]))


def test_constant_schedule_and_factory():
    assert ConstantRate(0.01)(ScheduleParams(9, 10)) == 0.01
    assert isinstance(make_schedule("warmup_cosine", lr=0.1), WarmupCosine)
    with pytest.raises(ValueError):
        make_schedule("step", lr=0.1)


def test_encode_target_accepts_index_or_vector():
    np.testing.assert_array_equal(encode_target(2, 3), [0.0, 0.0, 1.0])
    np.testing.assert_array_equal(encode_target(np.array([1, 0, 1]), 3), [1.0, 0.0, 1.0])
    with pytest.raises(ValueError):
        encode_target(3, 3)
    with pytest.raises(ValueError):
        encode_target(np.array([1.0, 0.0]), 3)


def test_classification_metrics():
    probs = np.array([[0.7, 0.2, 0.1], [0.1, 0.3, 0.6], [0.5, 0.4, 0.1]])
    targets = np.eye(3)[[0, 1, 1]]
    assert accuracy(probs, targets) == pytest.approx(1 / 3)
    assert top_k_accuracy(probs, targets, k=2) == pytest.approx(1.0)
    true_conf, other_conf = mean_confidence(probs, targets)
    assert true_conf == pytest.approx((0.7 + 0.3 + 0.4) / 3)
    assert other_conf == pytest.approx((0.2 + 0.1 + 0.1 + 0.6 + 0.5 + 0.1) / 6)
    assert 0.0 < macro_f1(probs, targets) < 1.0
    results = compute_metrics(["accuracy", "top_2_accuracy", "mean_confidence"], probs, np.array([0, 1, 1]))
    assert set(results) == {"accuracy", "top_2_accuracy", "confidence_true", "confidence_other"}
    with pytest.raises(KeyError):
        compute_metrics(["auc"], probs, targets)


def test_default_metrics_by_mode():
    assert "macro_f1" in default_metrics("single_label", num_classes=4)
    assert default_metrics("multi_label") == ["accuracy", "mean_confidence"]


def _tiny_classifier(**overrides):
    config = ClassifierConfig.single_label(
        dropout=(0.0, 0.0), normalization="none", schedule="constant", **overrides
    )
    return FieldClassifier(LayerDims(2, 4, 3, 2), config=config, seed=0)


def test_train_step_reports_observability_fields():
    clf = _tiny_classifier(learning_rate=0.01)
    batch = Batch(np.array([[1.0, 1.0], [-1.0, -1.0]]), np.array([1, 0]))
    step = clf.train(batch)
    assert step.batch_size == 2
    assert step.learning_rate == 0.01
    assert step.mean_loss > 0
    assert 0.0 <= step.mean_accuracy <= 1.0
    assert step.sanitized == 0
    assert clf.optimizer_state.t == 1


def test_train_rejects_oversized_batch():
    clf = _tiny_classifier(max_batch_size=4)
    batch = Batch(np.zeros((5, 2)), np.zeros(5, dtype=int))
    with pytest.raises(ValueError, match="max_batch_size"):
        clf.train(batch)


def test_non_finite_sample_is_sanitized(caplog):
    clf = _tiny_classifier(learning_rate=0.01)
    clf.initialize()
    batch = Batch(np.array([[np.nan, 1.0], [1.0, 1.0]]), np.array([0, 1]))
    with caplog.at_level(logging.WARNING, logger="fieldnet.training.loop"):
        step = clf.train(batch)
    assert step.sanitized > 0
    assert np.isfinite(step.mean_loss)
    assert clf.store.all_finite()
    assert any("non-finite" in record.message for record in caplog.records)


def test_non_finite_sample_keeps_running_stats_finite(caplog):
    clf = FieldClassifier(LayerDims(2, 4, 3, 2), seed=0)
    assert clf.config.normalization == "running_stats"
    assert clf.config.dropout != (0.0, 0.0)
    clf.initialize()
    batch = Batch(np.array([[np.nan, 1.0], [1.0, 1.0]]), np.array([0, 1]))
    with caplog.at_level(logging.WARNING, logger="fieldnet.training.loop"):
        step = clf.train(batch)
    assert step.sanitized > 0
    assert clf.store.all_finite()
    for norm in clf.store.norms:
        assert np.all(np.isfinite(norm.running_mean))
        assert np.all(np.isfinite(norm.running_var))

    prediction = clf.predict(np.array([1.0, 1.0]))
    assert np.isfinite(prediction.confidence)
    assert all(np.isfinite(p) for p in prediction.candidates.values())

    clf.train(Batch(np.array([[0.5, -0.5]]), np.array([1])))
    assert clf.store.all_finite()


def test_evaluate_uses_inference_mode():
    clf = _tiny_classifier()
    clf.initialize()
    before = clf.export_model()
    batch = Batch(np.random.default_rng(0).normal(size=(40, 2)), np.arange(40) % 2)
    metrics = evaluate(clf, batch)
    assert {"loss", "accuracy", "confidence_true"} <= set(metrics)
    assert clf.export_model() == before
