"""
Traffic record and prediction result types.

Feature-set variants seen across the traffic datasets are registered in
FEATURE_VARIANTS; any explicit ordered column list is accepted as well.
"""

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

# ------------------------------------------------------------------ #
#  Feature-set variants                                               #
# ------------------------------------------------------------------ #

FEATURE_VARIANTS: Dict[str, List[str]] = {
    "packet_basic": [
        "packet_count",
        "average_packet_size",
    ],
    "packet_extended": [
        "packet_count",
        "average_packet_size",
        "packet_duration",
        "inter_packet_interval",
        "packet_frequency",
        "total_data_sent",
        "source_destination_ratio",
    ],
    "ipasn_flows": [
        "local_ip",
        "remote_asn",
        "flows",
    ],
}

NORMAL = "normal"
ANOMALY = "anomaly"
CLASS_NAMES = (NORMAL, ANOMALY)


class MalformedInputError(ValueError):
    """A traffic record is missing a required numeric field, carries a
    non-finite value, or has the wrong number of attributes."""


class ModelLoadError(RuntimeError):
    """A persisted model artifact could not be loaded."""


class TrainingDataError(ValueError):
    """The training rows cannot fit a binary classifier (empty or one class)."""


def opposite_class(class_name: str) -> str:
    """Return the other of "normal" / "anomaly"."""
    if class_name not in CLASS_NAMES:
        raise ValueError(f"Unknown class name: {class_name}. Must be one of {CLASS_NAMES}.")
    return ANOMALY if class_name == NORMAL else NORMAL


@dataclass
class TrafficRecord:
    """A flat set of numeric traffic-summary attributes."""
    values: Dict[str, Any]
    label: Optional[bool] = None
    record_id: Optional[str] = None

    @classmethod
    def from_row(
        cls,
        row: Mapping[str, Any],
        label_col: Optional[str] = None,
        id_col: Optional[str] = None,
    ) -> "TrafficRecord":
        """Build a record from a CSV row or literal dict."""
        values = {
            k: v for k, v in row.items()
            if k != label_col and k != id_col
        }
        label = None
        if label_col and label_col in row and row[label_col] is not None:
            label = bool(row[label_col])
        record_id = None
        raw_id = row.get(id_col) if id_col else None
        if raw_id is not None and not (isinstance(raw_id, float) and math.isnan(raw_id)):
            record_id = str(raw_id)
        return cls(values=values, label=label, record_id=record_id)


@dataclass(frozen=True)
class PredictionResult:
    """Outcome of scoring one traffic record."""
    predicted_label: bool
    score: float
    probability: float
    verdict: str
    threshold: float
    record_id: Optional[str] = None
    features: Dict[str, float] = field(default_factory=dict, compare=False)

    def __post_init__(self):
        if not (0.0 <= self.probability <= 1.0) or math.isnan(self.probability):
            raise ValueError(f"probability must lie in [0, 1], got {self.probability}")
        if self.verdict not in CLASS_NAMES:
            raise ValueError(f"verdict must be one of {CLASS_NAMES}, got {self.verdict}")

    @property
    def is_anomaly(self) -> bool:
        return self.verdict == ANOMALY

    def to_dict(self) -> Dict[str, Any]:
        return {
            "record_id": self.record_id,
            "predicted_label": self.predicted_label,
            "verdict": self.verdict,
            "score": self.score,
            "probability": self.probability,
            "threshold": self.threshold,
        }
