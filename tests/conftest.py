import numpy as np
import pytest

from src.traffic_anomaly.config_loader import prepare_config
from data.traffic_generator import TrafficGenerator


class FixedProbabilityClassifier:
    """Stand-in classifier returning preset positive-class probabilities."""

    def __init__(self, probabilities, flat=False):
        self.probabilities = list(probabilities)
        self.flat = flat
        self.seen = None

    def predict_proba(self, X):
        self.seen = np.asarray(X)
        p = np.asarray(self.probabilities[: len(X)], dtype=float)
        if self.flat:
            return p
        return np.column_stack([1.0 - p, p])


@pytest.fixture
def make_config(tmp_path):
    def _make(**overrides):
        raw = {
            "labels": {"positive_class": "normal"},
            "paths": {
                "output_dir": str(tmp_path / "outputs"),
                "model_dir": str(tmp_path / "outputs" / "model"),
                "metrics_dir": str(tmp_path / "outputs" / "metrics"),
                "reports_dir": str(tmp_path / "outputs" / "reports"),
            },
        }
        for section, values in overrides.items():
            raw.setdefault(section, {}).update(values)
        return prepare_config(raw)
    return _make


@pytest.fixture
def traffic_frame():
    return TrafficGenerator(seed=7).generate_frame("packet_basic", n_normal=160, n_anomaly=80)
