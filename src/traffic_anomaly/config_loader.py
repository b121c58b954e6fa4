"""
Configuration loader with validation and defaults.
"""

import os
import yaml
import copy
import logging
from pathlib import Path
from typing import Any, Dict, List

from .records import CLASS_NAMES, FEATURE_VARIANTS

logger = logging.getLogger(__name__)

MODEL_TYPES = ("lightgbm", "xgboost")

# FastTree-equivalent boosting settings: 15 leaves, lr 0.01, 300 trees
DEFAULT_MODEL_PARAMS = {
    "num_leaves": 15,
    "learning_rate": 0.01,
    "n_estimators": 300,
}


def load_config(config_path: str = "config/anomaly_config.yaml") -> Dict[str, Any]:
    """Load and validate pipeline configuration."""
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        config = yaml.safe_load(f) or {}

    config = prepare_config(config)
    _ensure_directories(config)

    logger.info("Configuration loaded from %s", config_path)
    return config


def prepare_config(config: Dict[str, Any]) -> Dict[str, Any]:
    """Apply defaults to an in-memory config dict and validate it."""
    cfg = _apply_defaults(config)
    _validate_config(cfg)
    return cfg


def _apply_defaults(config: Dict[str, Any]) -> Dict[str, Any]:
    """Apply default values for missing keys."""
    cfg = copy.deepcopy(config)

    cfg.setdefault("data", {})
    cfg["data"].setdefault("path", "data/traffic.csv")
    cfg["data"].setdefault("label_column", "label")
    cfg["data"].setdefault("id_column", None)
    cfg["data"].setdefault("test_size", 0.2)
    cfg["data"].setdefault("random_seed", 42)
    cfg["data"].setdefault("remove_duplicates", False)
    cfg["data"].setdefault("imbalance_warning_ratio", 0.1)
    cfg["data"].setdefault("max_samples", None)

    cfg.setdefault("features", {})
    cfg["features"].setdefault("variant", "packet_basic")
    cfg["features"].setdefault("columns", None)

    # labels.positive_class has no default
    cfg.setdefault("labels", {})

    cfg.setdefault("model", {})
    cfg["model"].setdefault("type", "lightgbm")
    params = dict(DEFAULT_MODEL_PARAMS)
    params.update(cfg["model"].get("params") or {})
    cfg["model"]["params"] = params

    cfg.setdefault("training", {})
    cfg["training"].setdefault("cv_folds", 3)
    cfg["training"].setdefault("use_weighted_loss", True)

    cfg.setdefault("threshold", {})
    cfg["threshold"].setdefault("value", 0.6)
    cfg["threshold"].setdefault("methods", ["youden_j", "max_f1"])
    cfg["threshold"].setdefault("default_method", "youden_j")

    cfg.setdefault("prediction", {})
    cfg["prediction"].setdefault("input_path", None)
    cfg["prediction"].setdefault("samples", [])

    cfg.setdefault("paths", {})
    cfg["paths"].setdefault("output_dir", "outputs")
    cfg["paths"].setdefault("model_dir", "outputs/model")
    cfg["paths"].setdefault("metrics_dir", "outputs/metrics")
    cfg["paths"].setdefault("reports_dir", "outputs/reports")

    cfg.setdefault("logging", {})
    cfg["logging"].setdefault("level", "INFO")

    return cfg


def _validate_config(config: Dict[str, Any]) -> None:
    """Validate configuration values."""
    positive_class = config["labels"].get("positive_class")
    if positive_class not in CLASS_NAMES:
        raise ValueError(
            f"labels.positive_class must be set explicitly to one of {CLASS_NAMES}, "
            f"got {positive_class!r}"
        )

    model_type = config["model"]["type"]
    if model_type not in MODEL_TYPES:
        raise ValueError(f"Invalid model type: {model_type}. Must be one of {MODEL_TYPES}.")

    columns = config["features"].get("columns")
    if columns is not None:
        if not isinstance(columns, list) or not columns or not all(isinstance(c, str) for c in columns):
            raise ValueError(f"features.columns must be a non-empty list of names, got {columns!r}")
        if len(set(columns)) != len(columns):
            raise ValueError(f"features.columns contains duplicates: {columns}")
    else:
        variant = config["features"]["variant"]
        if variant not in FEATURE_VARIANTS:
            raise ValueError(
                f"Unknown feature variant: {variant}. Must be one of {sorted(FEATURE_VARIANTS)}."
            )

    threshold = config["threshold"]["value"]
    if not isinstance(threshold, (int, float)) or not 0.0 <= threshold <= 1.0:
        raise ValueError(f"threshold.value must be within [0, 1], got {threshold!r}")

    seed = config["data"]["random_seed"]
    if not isinstance(seed, int) or seed < 0:
        raise ValueError(f"random_seed must be a non-negative integer, got {seed}")

    test_size = config["data"]["test_size"]
    if not 0.0 <= test_size < 1.0:
        raise ValueError(f"test_size must be within [0, 1), got {test_size}")

    folds = config["training"]["cv_folds"]
    if not isinstance(folds, int) or folds < 2:
        raise ValueError(f"training.cv_folds must be an integer >= 2, got {folds!r}")


def feature_columns(config: Dict[str, Any]) -> List[str]:
    """Resolve the ordered feature column list from config."""
    columns = config["features"].get("columns")
    if columns:
        return list(columns)
    return list(FEATURE_VARIANTS[config["features"]["variant"]])


def _ensure_directories(config: Dict[str, Any]) -> None:
    """Create output directories if they don't exist."""
    for key in ["output_dir", "model_dir", "metrics_dir", "reports_dir"]:
        dir_path = config["paths"].get(key)
        if dir_path:
            os.makedirs(dir_path, exist_ok=True)


def save_config_snapshot(config: Dict[str, Any], output_path: str) -> None:
    """Save a snapshot of the config used for reproducibility."""
    os.makedirs(os.path.dirname(output_path) or ".", exist_ok=True)
    with open(output_path, "w", encoding="utf-8") as f:
        yaml.dump(config, f, default_flow_style=False, sort_keys=False)
    logger.info("Config snapshot saved to %s", output_path)
