import json
import os

import numpy as np

from src.traffic_anomaly.threshold_calibrator import (
    calibrate_threshold,
    optimize_max_f1,
    optimize_youden_j,
)


def _scores():
    y_true = np.array([0] * 50 + [1] * 50)
    y_proba = np.concatenate([np.linspace(0.05, 0.45, 50), np.linspace(0.55, 0.95, 50)])
    return y_true, y_proba


def test_youden_separates_classes():
    y_true, y_proba = _scores()
    threshold, metrics = optimize_youden_j(y_true, y_proba)
    assert 0.45 < threshold <= 0.55
    assert metrics["accuracy"] == 1.0


def test_max_f1_separates_classes():
    y_true, y_proba = _scores()
    threshold, metrics = optimize_max_f1(y_true, y_proba)
    assert 0.45 < threshold <= 0.55
    assert metrics["f1_score"] == 1.0


def test_calibration_reports_configured_threshold(make_config, tmp_path):
    y_true, y_proba = _scores()
    config = make_config()
    results = calibrate_threshold(y_true, y_proba, config, str(tmp_path))
    assert results["configured_threshold"]["threshold"] == 0.6
    assert results["configured_threshold"]["false_negative_rate"] > 0
    assert results["recommended_method"] == "youden_j"
    assert set(results["calibration_methods"]) == {"youden_j", "max_f1"}
    with open(os.path.join(tmp_path, "threshold.json")) as f:
        assert json.load(f)["recommended_threshold"] == results["recommended_threshold"]


def test_calibration_skips_single_class(make_config, tmp_path):
    y_true = np.ones(10, dtype=int)
    assert calibrate_threshold(y_true, np.full(10, 0.8), make_config(), str(tmp_path)) is None


def test_unknown_method_is_skipped(make_config, tmp_path):
    y_true, y_proba = _scores()
    config = make_config(threshold={"methods": ["max_f1", "coin_flip"], "default_method": "max_f1"})
    results = calibrate_threshold(y_true, y_proba, config, str(tmp_path))
    assert set(results["calibration_methods"]) == {"max_f1"}
    assert results["recommended_threshold"] == results["calibration_methods"]["max_f1"]["threshold"]
