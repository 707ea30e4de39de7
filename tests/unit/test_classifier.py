import json

import numpy as np
import pytest

from fieldnet import (
    ClassifierConfig,
    FieldClassifier,
    LabelVocabulary,
    LayerDims,
    SerializationError,
    ShapeMismatchError,
    UninitializedModelError,
)
from fieldnet.core.types import Batch, Sample, ScheduleParams
from fieldnet.serialization import FORMAT_VERSION


def _separable_set(seed=0, n=20):
    rng = np.random.default_rng(seed)
    labels = np.arange(n) % 2
    centers = np.array([[-1.0, -1.0], [1.0, 1.0]])
    inputs = centers[labels] + 0.2 * rng.standard_normal((n, 2))
    return inputs, labels


def test_predict_on_uninitialized_model_returns_unknown():
    clf = FieldClassifier(LayerDims(3, 4, 4, 2))
    prediction = clf.predict(np.zeros(3))
    assert prediction.confidence == 0.0
    assert prediction.label == "unknown"
    assert prediction.is_unknown
    assert not clf.is_ready
    with pytest.raises(UninitializedModelError):
        clf.predict_proba(np.zeros(3))
    with pytest.raises(UninitializedModelError):
        clf.export_model()


def test_train_without_auto_initialize_raises():
    config = ClassifierConfig.single_label(auto_initialize=False)
    clf = FieldClassifier(LayerDims(2, 3, 3, 2), config=config)
    with pytest.raises(UninitializedModelError):
        clf.train([Sample(np.zeros(2), 0)])


def test_train_initializes_lazily():
    clf = FieldClassifier(LayerDims(2, 3, 3, 2))
    step = clf.train([Sample(np.zeros(2), 0), Sample(np.ones(2), 1)], ScheduleParams(0, 10))
    assert clf.is_ready
    assert step.learning_rate == pytest.approx(2e-4 / 5)


def test_single_label_classifier_converges():
    inputs, labels = _separable_set()
    config = ClassifierConfig.single_label(
        dropout=(0.0, 0.0),
        normalization="none",
        schedule="constant",
        learning_rate=0.02,
    )
    clf = FieldClassifier(LayerDims(2, 4, 3, 2), config=config, seed=3)
    batch = Batch(inputs, labels)
    steps = [clf.train(batch) for _ in range(200)]
    losses = [s.mean_loss for s in steps]
    assert np.mean(losses[:20]) > np.mean(losses[-20:])
    assert steps[-1].mean_accuracy >= 0.95
    correct = sum(clf.predict(x).index == y for x, y in zip(inputs, labels))
    assert correct / len(labels) >= 0.95


def test_single_label_prediction_ranks_top_k_candidates():
    vocab = LabelVocabulary(["unknown", "first_name", "last_name", "email", "phone", "city", "zip_code"])
    clf = FieldClassifier(LayerDims(4, 8, 8, 7), vocabulary=vocab, seed=1)
    clf.initialize()
    prediction = clf.predict(np.array([0.5, -0.2, 1.0, 0.0]))
    probs = clf.predict_proba(np.array([0.5, -0.2, 1.0, 0.0]))
    assert prediction.label == vocab.label_of(int(np.argmax(probs)))
    assert prediction.confidence == pytest.approx(float(np.max(probs)))
    assert len(prediction.candidates) == 5
    values = list(prediction.candidates.values())
    assert values == sorted(values, reverse=True)
    assert abs(float(np.sum(probs)) - 1.0) < 1e-6


def _bias_only_record(clf, class_two_bias):
    record = clf.export_model()
    for idx in (1, 2, 3):
        record[f"weight_matrix{idx}"] = np.zeros_like(np.asarray(record[f"weight_matrix{idx}"])).tolist()
    output_bias = [-5.0] * clf.dims.output_size
    output_bias[2] = class_two_bias
    record["bias_vector3"] = output_bias
    return record


@pytest.mark.parametrize("bias, expected", [(0.2, "class_2"), (-1.0, "unknown")])
def test_multi_label_threshold(bias, expected):
    clf = FieldClassifier(LayerDims(3, 4, 4, 4), config=ClassifierConfig.multi_label(), seed=0)
    clf.initialize()
    clf.import_model(_bias_only_record(clf, bias))
    prediction = clf.predict(np.array([0.3, -0.7, 1.5]))
    assert prediction.label == expected
    sigmoid_value = 1.0 / (1.0 + np.exp(-bias))
    assert prediction.confidence == pytest.approx(sigmoid_value)
    if expected == "unknown":
        assert prediction.candidates == {}
    else:
        assert list(prediction.candidates) == ["class_2"]


def test_multi_label_probabilities_are_independent():
    clf = FieldClassifier(LayerDims(3, 5, 5, 4), config=ClassifierConfig.multi_label(), seed=2)
    clf.initialize()
    rng = np.random.default_rng(0)
    for _ in range(20):
        probs = clf.predict_proba(rng.normal(0, 5, size=3))
        assert np.all((probs > 0) & (probs < 1))


def test_predict_rejects_wrong_feature_length():
    clf = FieldClassifier(LayerDims(3, 4, 4, 2), seed=0)
    clf.initialize()
    with pytest.raises(ShapeMismatchError):
        clf.predict(np.zeros(5))


def test_vocabulary_must_match_output_size():
    with pytest.raises(ShapeMismatchError):
        FieldClassifier(LayerDims(3, 4, 4, 2), vocabulary=LabelVocabulary(["a", "b", "c"]))


def _trained_classifier(seed=0):
    inputs, labels = _separable_set(seed)
    clf = FieldClassifier(LayerDims(2, 6, 5, 2), seed=seed)
    for epoch in range(5):
        clf.train(Batch(inputs, labels), ScheduleParams(epoch, 5))
    return clf, inputs


def test_serialization_round_trip_reproduces_predictions():
    clf, inputs = _trained_classifier()
    record = json.loads(json.dumps(clf.export_model()))
    assert record["format_version"] == FORMAT_VERSION
    assert "running_variance2" in record

    clone = FieldClassifier(LayerDims(2, 6, 5, 2), seed=99)
    clone.import_model(record)
    for x in inputs:
        np.testing.assert_allclose(clone.predict_proba(x), clf.predict_proba(x), rtol=0, atol=1e-12)
    assert clone.optimizer_state.t == 0


def test_save_and_load(tmp_path):
    clf, inputs = _trained_classifier()
    path = clf.save(tmp_path / "model.json")
    clone = FieldClassifier(LayerDims(2, 6, 5, 2))
    clone.load(path)
    np.testing.assert_array_equal(clone.predict_proba(inputs[0]), clf.predict_proba(inputs[0]))
    (tmp_path / "broken.json").write_text("{not json")
    with pytest.raises(SerializationError):
        clone.load(tmp_path / "broken.json")


def test_failed_import_leaves_model_untouched():
    clf, inputs = _trained_classifier()
    before = clf.predict_proba(inputs[0])

    bad_shape = clf.export_model()
    bad_shape["weight_matrix2"] = np.zeros((6, 4)).tolist()
    with pytest.raises(ShapeMismatchError):
        clf.import_model(bad_shape)

    bad_version = clf.export_model()
    bad_version["format_version"] = FORMAT_VERSION + 1
    with pytest.raises(SerializationError):
        clf.import_model(bad_version)

    missing = clf.export_model()
    del missing["running_mean1"]
    with pytest.raises(SerializationError):
        clf.import_model(missing)

    other_mode = clf.export_model()
    other_mode["mode"] = "multi_label"
    with pytest.raises(SerializationError):
        clf.import_model(other_mode)

    scalar_dims = clf.export_model()
    scalar_dims["layer_dims"] = 5
    with pytest.raises(SerializationError):
        clf.import_model(scalar_dims)

    np.testing.assert_array_equal(clf.predict_proba(inputs[0]), before)


def test_inputs_are_copied_not_retained():
    clf = FieldClassifier(LayerDims(2, 3, 3, 2), seed=0)
    clf.initialize()
    record = clf.export_model()
    clf.import_model(record)
    record["bias_vector1"][0] = 123.0
    assert clf.store.biases[0][0] != 123.0
