"""
Decision threshold suggestions.

Two searches over the evaluation split's probabilities:
- youden_j: maximizes TPR - FPR along the ROC curve
- max_f1: maximizes F1 along the precision-recall curve

The suggestion is written next to the metrics and compared with the
configured threshold, which stays in force.
"""

import os
import json
import logging
from typing import Any, Dict, Optional, Tuple

import numpy as np
from sklearn.metrics import precision_recall_curve, roc_curve

from .evaluator import metrics_at_threshold

logger = logging.getLogger(__name__)


def optimize_youden_j(y_true: np.ndarray, y_proba: np.ndarray) -> Tuple[float, Dict[str, Any]]:
    """Threshold with the largest Youden's J (TPR - FPR)."""
    fpr, tpr, thresholds = roc_curve(y_true, y_proba)
    best = int(np.argmax(tpr - fpr))
    # roc_curve's first threshold is +inf
    threshold = float(min(thresholds[best], 1.0))
    logger.info("youden_j: t=%.4f J=%.4f", threshold, tpr[best] - fpr[best])
    return threshold, metrics_at_threshold(y_true, y_proba, threshold)


def optimize_max_f1(y_true: np.ndarray, y_proba: np.ndarray) -> Tuple[float, Dict[str, Any]]:
    """Threshold with the largest F1 score."""
    precision, recall, thresholds = precision_recall_curve(y_true, y_proba)
    # The last precision/recall pair has no threshold
    p, r = precision[:-1], recall[:-1]
    f1 = np.divide(2 * p * r, p + r, out=np.zeros_like(p), where=(p + r) > 0)
    best = int(np.argmax(f1))
    threshold = float(thresholds[best])
    logger.info("max_f1: t=%.4f F1=%.4f", threshold, f1[best])
    return threshold, metrics_at_threshold(y_true, y_proba, threshold)


OPTIMIZERS = {
    "youden_j": optimize_youden_j,
    "max_f1": optimize_max_f1,
}


def calibrate_threshold(
    y_true: np.ndarray,
    y_proba: np.ndarray,
    config: Dict[str, Any],
    output_dir: str,
) -> Optional[Dict[str, Any]]:
    """
    Run the configured searches and write threshold.json.

    Returns None when the split holds a single class, since neither curve
    is defined there.
    """
    logger.info("=" * 60)
    logger.info("THRESHOLD CALIBRATION")
    logger.info("=" * 60)

    if len(np.unique(y_true)) < 2:
        logger.warning("Threshold calibration needs both classes; skipping")
        return None

    configured = float(config["threshold"]["value"])
    default_method = config["threshold"].get("default_method", "youden_j")
    results = {
        "configured_threshold": metrics_at_threshold(y_true, y_proba, configured),
        "calibration_methods": {},
        "recommended_method": default_method,
        "recommended_threshold": None,
    }

    for method in config["threshold"].get("methods", list(OPTIMIZERS)):
        optimizer = OPTIMIZERS.get(method)
        if optimizer is None:
            logger.warning("Unknown calibration method: %s", method)
            continue
        threshold, metrics = optimizer(y_true, y_proba)
        results["calibration_methods"][method] = {"threshold": threshold, "metrics": metrics}
        if method == default_method:
            results["recommended_threshold"] = threshold

    rows = [("configured", results["configured_threshold"])]
    rows += [(name, data["metrics"]) for name, data in results["calibration_methods"].items()]
    for name, m in rows:
        logger.info("  %-10s t=%.4f F1=%.4f FPR=%.4f FNR=%.4f", name, m["threshold"],
                    m["f1_score"], m["false_positive_rate"], m["false_negative_rate"])

    os.makedirs(output_dir, exist_ok=True)
    path = os.path.join(output_dir, "threshold.json")
    with open(path, "w") as f:
        json.dump(results, f, indent=2, default=str)
    logger.info("Threshold calibration saved to %s", path)

    return results
