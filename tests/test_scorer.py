import numpy as np
import pytest

from src.traffic_anomaly.features import build_normalizer
from src.traffic_anomaly.records import MalformedInputError, PredictionResult, TrafficRecord
from src.traffic_anomaly.scorer import AnomalyScorer, decide, log_odds

from .conftest import FixedProbabilityClassifier

COLUMNS = ["packet_count", "average_packet_size"]


def make_scorer(probabilities, positive_class="normal", threshold=0.6, **kwargs):
    return AnomalyScorer(
        classifier=FixedProbabilityClassifier(probabilities, **kwargs),
        feature_cols=COLUMNS,
        threshold=threshold,
        positive_class=positive_class,
    )


@pytest.mark.parametrize("threshold", [0.0, 0.3, 0.6, 1.0])
def test_decision_rule(threshold):
    for p in np.linspace(0.0, 1.0, 101):
        assert decide(p, threshold) == (p >= threshold)
        assert decide(p, threshold) == decide(p, threshold)


def test_probability_at_threshold_is_positive():
    result = make_scorer([0.6]).score({"packet_count": 1, "average_packet_size": 1})
    assert result.predicted_label is True


def test_high_probability_is_normal():
    record = TrafficRecord(values={"packet_count": 150, "average_packet_size": 500}, record_id="a")
    result = make_scorer([0.9]).score(record)
    assert result.predicted_label is True
    assert result.verdict == "normal"
    assert not result.is_anomaly
    assert result.probability == pytest.approx(0.9)
    assert result.record_id == "a"


def test_low_probability_is_anomaly():
    record = TrafficRecord(values={"packet_count": 400, "average_packet_size": 1500})
    result = make_scorer([0.2]).score(record)
    assert result.predicted_label is False
    assert result.verdict == "anomaly"
    assert result.is_anomaly


def test_anomaly_as_positive_class():
    scorer = make_scorer([0.9, 0.2], positive_class="anomaly")
    high, low = scorer.score_batch([[1, 2], [3, 4]])
    assert (high.predicted_label, high.verdict) == (True, "anomaly")
    assert (low.predicted_label, low.verdict) == (False, "normal")


def test_raw_score_is_log_odds():
    result = make_scorer([0.2]).score([400, 1500])
    assert result.score == pytest.approx(np.log(0.2 / 0.8))
    assert log_odds(np.array([0.5]))[0] == pytest.approx(0.0)
    assert np.isfinite(log_odds(np.array([0.0, 1.0]))).all()


def test_batch_preserves_order():
    probs = [0.1, 0.95, 0.59, 0.61]
    results = make_scorer(probs).score_batch([[i, i] for i in range(4)])
    assert [r.probability for r in results] == pytest.approx(probs)
    assert [r.predicted_label for r in results] == [False, True, False, True]


def test_flat_probability_output():
    result = make_scorer([0.7], flat=True).score([1, 2])
    assert result.probability == pytest.approx(0.7)


def test_empty_batch():
    assert make_scorer([]).score_batch([]) == []


def test_malformed_record_raises():
    scorer = make_scorer([0.9])
    with pytest.raises(MalformedInputError):
        scorer.score({"packet_count": 150})
    with pytest.raises(MalformedInputError):
        scorer.score([150])
    with pytest.raises(MalformedInputError):
        scorer.score({"packet_count": 150, "average_packet_size": float("nan")})


def test_normalizer_applied_before_classifier():
    normalizer = build_normalizer().fit(np.array([[0.0, 0.0], [200.0, 1000.0]]))
    classifier = FixedProbabilityClassifier([0.9])
    scorer = AnomalyScorer(classifier, COLUMNS, 0.6, "normal", normalizer=normalizer)
    scorer.score({"packet_count": 100, "average_packet_size": 500})
    assert np.allclose(classifier.seen, [[0.5, 0.5]])


def test_invalid_threshold():
    with pytest.raises(ValueError):
        make_scorer([0.5], threshold=1.2)


def test_prediction_result_probability_bounds():
    with pytest.raises(ValueError):
        PredictionResult(predicted_label=True, score=0.0, probability=1.5,
                         verdict="normal", threshold=0.6)


def test_prediction_result_is_immutable():
    result = make_scorer([0.9]).score([1, 2])
    with pytest.raises(AttributeError):
        result.probability = 0.1
