import json
import os

import numpy as np
import pytest

from src.traffic_anomaly.evaluator import (
    compute_binary_metrics,
    metrics_at_threshold,
    run_full_evaluation,
)


def test_metrics_at_threshold_counts():
    y_true = np.array([1, 1, 1, 0, 0, 0])
    y_proba = np.array([0.9, 0.6, 0.3, 0.7, 0.2, 0.1])
    m = metrics_at_threshold(y_true, y_proba, 0.6)
    assert (m["true_positives"], m["false_negatives"]) == (2, 1)
    assert (m["false_positives"], m["true_negatives"]) == (1, 2)
    assert m["precision"] == pytest.approx(2 / 3)
    assert m["recall"] == pytest.approx(2 / 3)
    assert m["false_positive_rate"] == pytest.approx(1 / 3)
    assert m["false_negative_rate"] == pytest.approx(1 / 3)


def test_threshold_boundary_is_positive():
    m = metrics_at_threshold(np.array([1, 0]), np.array([0.6, 0.59]), 0.6)
    assert m["accuracy"] == 1.0


def test_single_class_split_has_no_auc():
    m = compute_binary_metrics(np.ones(4, dtype=int), np.array([0.9, 0.8, 0.7, 0.2]), 0.6)
    assert m["roc_auc"] is None
    assert m["pr_auc"] is None
    assert m["recall"] == pytest.approx(0.75)


def test_run_full_evaluation_writes_outputs(tmp_path):
    y_true = np.array([0] * 10 + [1] * 10)
    y_proba = np.concatenate([np.linspace(0.0, 0.5, 10), np.linspace(0.5, 1.0, 10)])
    metrics = run_full_evaluation(y_true, y_proba, 0.6, str(tmp_path), ["anomaly", "normal"])

    assert metrics["total_samples"] == 20
    assert metrics["roc_auc"] > 0.9
    for name in ["roc_curve.png", "pr_curve.png", "confusion_matrix.png", "evaluation_metrics.json"]:
        assert os.path.exists(os.path.join(tmp_path, name))
    with open(os.path.join(tmp_path, "evaluation_metrics.json")) as f:
        assert json.load(f)["class_names"] == ["anomaly", "normal"]
