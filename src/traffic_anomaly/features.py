"""
Feature assembly and min-max normalization.

A record's configured attributes are concatenated in order into a single
vector; vectors are rescaled with minimum/maximum statistics fitted on the
training set only.
"""

import logging
import math
from typing import Any, Dict, List, Mapping, Sequence, Union

import numpy as np
import pandas as pd
from sklearn.preprocessing import MinMaxScaler

from .records import MalformedInputError, TrafficRecord

logger = logging.getLogger(__name__)

RecordLike = Union[TrafficRecord, Mapping[str, Any], Sequence[Any]]


def _to_float(value: Any, column: str) -> float:
    if value is None or isinstance(value, bool):
        raise MalformedInputError(f"Field '{column}' must be numeric, got {value!r}")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise MalformedInputError(f"Field '{column}' must be numeric, got {value!r}") from None
    if not math.isfinite(number):
        raise MalformedInputError(f"Field '{column}' must be finite, got {value!r}")
    return number


def assemble_features(record: RecordLike, columns: List[str]) -> np.ndarray:
    """
    Build the ordered feature vector for one record.

    Accepts a TrafficRecord, a mapping of attribute name to value, or a
    positional sequence whose length must equal len(columns).
    """
    if isinstance(record, TrafficRecord):
        record = record.values

    if isinstance(record, Mapping):
        missing = [c for c in columns if c not in record]
        if missing:
            raise MalformedInputError(f"Missing required field(s): {missing}")
        values = [_to_float(record[c], c) for c in columns]
    else:
        if isinstance(record, (str, bytes)):
            raise MalformedInputError(f"Expected a record, got {type(record).__name__}")
        values = list(record)
        if len(values) != len(columns):
            raise MalformedInputError(
                f"Expected {len(columns)} attribute(s) {columns}, got {len(values)}"
            )
        values = [_to_float(v, c) for v, c in zip(values, columns)]

    return np.asarray(values, dtype=np.float64)


def assemble_matrix(df: pd.DataFrame, columns: List[str]) -> np.ndarray:
    """Build the feature matrix for a DataFrame of traffic rows."""
    missing = [c for c in columns if c not in df.columns]
    if missing:
        raise MalformedInputError(
            f"Missing required column(s): {missing}. Available: {list(df.columns)}"
        )

    numeric = df[columns].apply(pd.to_numeric, errors="coerce")
    X = numeric.to_numpy(dtype=np.float64)
    bad = ~np.isfinite(X)
    if bad.any():
        rows, cols = np.nonzero(bad)
        examples = [
            f"row {df.index[r]} '{columns[c]}'" for r, c in list(zip(rows, cols))[:5]
        ]
        raise MalformedInputError(
            f"{int(bad.sum())} missing or non-finite value(s), e.g. {', '.join(examples)}"
        )
    return X


def build_normalizer() -> MinMaxScaler:
    """Create an unfitted min-max normalizer mapping training ranges to [0, 1]."""
    return MinMaxScaler(feature_range=(0.0, 1.0))


def normalization_stats(scaler: MinMaxScaler, columns: List[str]) -> Dict[str, Dict[str, float]]:
    """Per-column training minimum/maximum of a fitted normalizer."""
    return {
        col: {"min": float(lo), "max": float(hi)}
        for col, lo, hi in zip(columns, scaler.data_min_, scaler.data_max_)
    }
