"""
Data loading, validation, label parsing and splitting for traffic rows.

Handles:
- CSV loading and literal (in-memory) rows
- Column name normalization
- Boolean label parsing
- Data-quality reporting (empty / single-class / imbalanced data)
- Stratified train/test split
"""

import os
import re
import math
import json
import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

import numpy as np
import pandas as pd
from sklearn.model_selection import train_test_split

from .config_loader import feature_columns
from .features import assemble_matrix
from .records import MalformedInputError, TrafficRecord

logger = logging.getLogger(__name__)

LABEL_COL = "label_binary"

_TRUE_STRINGS = {"true", "t", "yes", "y", "1", "1.0"}
_FALSE_STRINGS = {"false", "f", "no", "n", "0", "0.0"}

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")

# Abbreviated headers of the IP/ASN flow export (date,l_ipn,r_asn,f)
COLUMN_ALIASES = {
    "l_ipn": "local_ip",
    "r_asn": "remote_asn",
    "f": "flows",
}


# ------------------------------------------------------------------ #
#  Column & label helpers                                             #
# ------------------------------------------------------------------ #

def normalize_column_name(name: str) -> str:
    """'AveragePacketSize' / 'Average Packet Size' -> 'average_packet_size'."""
    name = _CAMEL_BOUNDARY.sub("_", str(name).strip())
    name = re.sub(r"[\s/\-]+", "_", name).lower()
    return COLUMN_ALIASES.get(name, name)


def _normalize_columns(df: pd.DataFrame) -> pd.DataFrame:
    """Strip whitespace and normalize column names to snake_case."""
    return df.rename(columns={c: normalize_column_name(c) for c in df.columns})


def _is_missing(value: Any) -> bool:
    return value is None or (isinstance(value, float) and math.isnan(value))


def _map_label(value: Any) -> int:
    """Map a raw boolean-ish label to 0/1 (1 = label true)."""
    if _is_missing(value):
        raise MalformedInputError("Missing label value")
    if isinstance(value, (bool, np.bool_)):
        return int(value)
    if isinstance(value, (int, float, np.integer, np.floating)) and value in (0, 1):
        return int(value)
    text = str(value).strip().lower()
    if text in _TRUE_STRINGS:
        return 1
    if text in _FALSE_STRINGS:
        return 0
    raise MalformedInputError(f"Cannot interpret label value {value!r} as a boolean")


def _parse_labels(values: pd.Series) -> List[int]:
    """Map a label column to 0/1, naming the offending row on failure."""
    labels = []
    for idx, value in values.items():
        try:
            labels.append(_map_label(value))
        except MalformedInputError as e:
            raise MalformedInputError(f"Row {idx} '{values.name}': {e}") from None
    return labels


# ------------------------------------------------------------------ #
#  Core data loading                                                  #
# ------------------------------------------------------------------ #

def load_csv(path: str, config: Dict[str, Any]) -> pd.DataFrame:
    """Load a traffic CSV with normalized column names."""
    if not os.path.exists(path):
        raise FileNotFoundError(f"Traffic data file not found: {path}")

    logger.info("Loading %s ...", path)
    df = pd.read_csv(path)
    df = _normalize_columns(df)
    logger.info("  -> %d rows, %d cols", len(df), len(df.columns))

    max_samples = config["data"].get("max_samples")
    if max_samples and max_samples < len(df):
        df = df.sample(n=max_samples, random_state=config["data"]["random_seed"])
        logger.info("Subsampled to %d rows", max_samples)

    return df.reset_index(drop=True)


def rows_to_frame(rows: Iterable[Mapping[str, Any]]) -> pd.DataFrame:
    """Turn literal rows (dicts) into a DataFrame with normalized columns."""
    return _normalize_columns(pd.DataFrame(list(rows)))


def frame_to_records(df: pd.DataFrame, config: Dict[str, Any]) -> List[TrafficRecord]:
    """Convert a DataFrame of rows into TrafficRecords."""
    label_col = normalize_column_name(config["data"]["label_column"])
    id_col = config["data"].get("id_column")
    id_col = normalize_column_name(id_col) if id_col else None

    records = []
    for idx, row in zip(df.index, df.to_dict(orient="records")):
        record = TrafficRecord.from_row(row, id_col=id_col)
        if label_col in row:
            record.values.pop(label_col, None)
            # Labels are optional when scoring
            raw = row[label_col]
            if not _is_missing(raw):
                try:
                    record.label = bool(_map_label(raw))
                except MalformedInputError as e:
                    raise MalformedInputError(f"Row {idx} '{label_col}': {e}") from None
        records.append(record)
    return records


def create_labels(df: pd.DataFrame, config: Dict[str, Any]) -> pd.DataFrame:
    """Parse the configured label column into a 0/1 column."""
    label_col = normalize_column_name(config["data"]["label_column"])
    if label_col not in df.columns:
        raise KeyError(f"Label column '{label_col}' not found. Available: {list(df.columns)}")

    df = df.copy()
    df[LABEL_COL] = _parse_labels(df[label_col])
    logger.info("Binary labels: %s", {int(k): int(v) for k, v in df[LABEL_COL].value_counts().items()})
    return df


# ------------------------------------------------------------------ #
#  Data quality                                                       #
# ------------------------------------------------------------------ #

def check_data_quality(df: pd.DataFrame, config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Report empty, single-class and imbalanced training data.

    Problems are logged as warnings and returned; nothing is altered.
    """
    warnings = []
    counts = df[LABEL_COL].value_counts().to_dict() if LABEL_COL in df.columns else {}
    positives = int(counts.get(1, 0))
    negatives = int(counts.get(0, 0))
    total = positives + negatives

    if total == 0:
        warnings.append("Training data is empty.")
    elif positives == 0 or negatives == 0:
        warnings.append(
            f"Training data contains a single class (positive={positives}, negative={negatives})."
        )
    else:
        ratio = min(positives, negatives) / total
        min_ratio = config["data"]["imbalance_warning_ratio"]
        if ratio < min_ratio:
            warnings.append(
                f"Label imbalance: minority class is {ratio:.2%} of {total} rows "
                f"(below {min_ratio:.2%}); accuracy metrics are unreliable."
            )

    for w in warnings:
        logger.warning("Data quality: %s", w)

    return {
        "total_rows": total,
        "positive_count": positives,
        "negative_count": negatives,
        "warnings": warnings,
    }


# ------------------------------------------------------------------ #
#  Stratified Split                                                    #
# ------------------------------------------------------------------ #

def can_hold_out(df: pd.DataFrame, test_size: float) -> bool:
    """
    Whether a stratified hold-out split is possible.

    Every class needs at least two rows, and both splits need at least one
    row per class.
    """
    if test_size == 0 or len(df) < 2:
        return False
    counts = df[LABEL_COL].value_counts()
    n_classes = len(counts)
    n_test = math.ceil(test_size * len(df))
    return (
        n_classes > 1
        and counts.min() >= 2
        and n_test >= n_classes
        and len(df) - n_test >= n_classes
    )


def stratified_split(df: pd.DataFrame, config: Dict[str, Any]) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """
    Split into train/test. When no stratified hold-out is possible (test_size
    0, or too few rows per class) the test split is the training data itself,
    so the training split never loses a class.
    """
    test_size = config["data"]["test_size"]
    seed = config["data"]["random_seed"]

    if not can_hold_out(df, test_size):
        if test_size and len(df) >= 2:
            logger.warning("Too few rows per class for a stratified %.0f%% hold-out; "
                           "evaluating on the training data", test_size * 100)
        logger.info("Evaluating on the training data (test_size=%s, rows=%d)", test_size, len(df))
        return df.reset_index(drop=True), df.reset_index(drop=True)

    train, test = train_test_split(df, test_size=test_size, random_state=seed, stratify=df[LABEL_COL])

    logger.info("Split sizes: train=%d, test=%d", len(train), len(test))
    for split_name, split_df in [("train", train), ("test", test)]:
        dist = split_df[LABEL_COL].value_counts().to_dict()
        logger.info("  %s distribution: %s", split_name, dist)

    return train.reset_index(drop=True), test.reset_index(drop=True)


# ------------------------------------------------------------------ #
#  Master pipeline entry point                                        #
# ------------------------------------------------------------------ #

def run_data_pipeline(
    config: Dict[str, Any],
    df: Optional[pd.DataFrame] = None,
) -> Tuple[pd.DataFrame, pd.DataFrame, List[str], Dict[str, Any]]:
    """
    Execute the data loading & validation stage.

    Returns (train, test, feature_cols, metadata).
    """
    logger.info("=" * 60)
    logger.info("STAGE 1: DATA LOADING & VALIDATION")
    logger.info("=" * 60)

    if df is None:
        df = load_csv(config["data"]["path"], config)
    else:
        df = _normalize_columns(df)

    feature_cols = feature_columns(config)
    # Raises MalformedInputError on missing columns or bad cells
    assemble_matrix(df, feature_cols)

    df = create_labels(df, config)

    if config["data"].get("remove_duplicates"):
        before = len(df)
        df = df.drop_duplicates(subset=feature_cols + [LABEL_COL]).reset_index(drop=True)
        if before - len(df) > 0:
            logger.info("Removed %d duplicate rows", before - len(df))

    quality = check_data_quality(df, config)

    train, test = stratified_split(df, config)

    metadata = {
        "feature_columns": feature_cols,
        "num_features": len(feature_cols),
        "total_rows": len(df),
        "train_rows": len(train),
        "test_rows": len(test),
        "evaluated_on_training_data": not can_hold_out(df, config["data"]["test_size"]),
        "binary_distribution": {
            "train": {str(k): int(v) for k, v in train[LABEL_COL].value_counts().items()},
            "test": {str(k): int(v) for k, v in test[LABEL_COL].value_counts().items()},
        },
        "data_quality": quality,
    }
    return train, test, feature_cols, metadata


def save_metadata(metadata: Dict[str, Any], output_dir: str) -> str:
    """Save dataset metadata next to the metrics."""
    os.makedirs(output_dir, exist_ok=True)
    path = os.path.join(output_dir, "data_metadata.json")
    with open(path, "w") as f:
        json.dump(metadata, f, indent=2, default=str)
    logger.info("Dataset metadata saved to %s", path)
    return path
