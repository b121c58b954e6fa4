"""
Evaluation of the traffic anomaly classifier.

Binary metrics at a decision threshold, ROC / PR / confusion plots and JSON
export. Label 1 is always the configured positive class.
"""

import os
import json
import logging
from typing import Any, Dict, List

import numpy as np
import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
from sklearn.metrics import (
    accuracy_score,
    average_precision_score,
    confusion_matrix,
    precision_recall_fscore_support,
    precision_recall_curve,
    roc_auc_score,
    roc_curve,
)

logger = logging.getLogger(__name__)


def _rate(num: int, den: int) -> float:
    return float(num / den) if den > 0 else 0.0


def metrics_at_threshold(y_true: np.ndarray, y_proba: np.ndarray, threshold: float) -> Dict[str, Any]:
    """Threshold the probabilities (p >= t is positive) and score the result."""
    y_true = np.asarray(y_true).astype(int)
    y_pred = (np.asarray(y_proba) >= threshold).astype(int)
    tn, fp, fn, tp = (int(v) for v in confusion_matrix(y_true, y_pred, labels=[0, 1]).ravel())
    precision, recall, f1, _ = precision_recall_fscore_support(
        y_true, y_pred, average="binary", pos_label=1, zero_division=0
    )
    return {
        "threshold": float(threshold),
        "accuracy": float(accuracy_score(y_true, y_pred)) if len(y_true) else 0.0,
        "precision": float(precision),
        "recall": float(recall),
        "f1_score": float(f1),
        "false_positive_rate": _rate(fp, fp + tn),
        "false_negative_rate": _rate(fn, fn + tp),
        "true_positives": tp,
        "true_negatives": tn,
        "false_positives": fp,
        "false_negatives": fn,
    }


def compute_binary_metrics(y_true: np.ndarray, y_proba: np.ndarray, threshold: float) -> Dict[str, Any]:
    """
    Full metric set for one evaluation split.

    ROC-AUC and PR-AUC are None when the split holds a single class.
    """
    metrics = metrics_at_threshold(y_true, y_proba, threshold)
    metrics["total_samples"] = int(len(y_true))

    both_classes = len(np.unique(y_true)) > 1
    metrics["roc_auc"] = float(roc_auc_score(y_true, y_proba)) if both_classes else None
    metrics["pr_auc"] = float(average_precision_score(y_true, y_proba)) if both_classes else None

    for k, v in metrics.items():
        logger.info("  %s: %s", k, f"{v:.4f}" if isinstance(v, float) else v)
    return metrics


# ------------------------------------------------------------------ #
#  Plots                                                               #
# ------------------------------------------------------------------ #

def _save_figure(fig, output_path: str, what: str) -> None:
    fig.tight_layout()
    fig.savefig(output_path, dpi=150, bbox_inches="tight")
    plt.close(fig)
    logger.info("%s saved to %s", what, output_path)


def plot_confusion_matrix(
    y_true: np.ndarray,
    y_pred: np.ndarray,
    class_names: List[str],
    output_path: str,
) -> None:
    """2x2 confusion matrix; class_names is [negative, positive]."""
    cm = confusion_matrix(y_true, y_pred, labels=[0, 1])

    fig, ax = plt.subplots(figsize=(6, 5))
    im = ax.imshow(cm, cmap=plt.cm.Blues)
    fig.colorbar(im, ax=ax)
    ax.set(xticks=[0, 1], yticks=[0, 1], xticklabels=class_names, yticklabels=class_names,
           xlabel="Predicted", ylabel="Actual")
    ax.set_title("Confusion Matrix", fontweight="bold")
    for (i, j), count in np.ndenumerate(cm):
        ax.text(j, i, str(count), ha="center", va="center",
                color="white" if count > cm.max() / 2 else "black")
    _save_figure(fig, output_path, "Confusion matrix")


def plot_roc_curve(y_true: np.ndarray, y_proba: np.ndarray, output_path: str) -> None:
    fpr, tpr, _ = roc_curve(y_true, y_proba)
    fig, ax = plt.subplots(figsize=(8, 6))
    ax.plot(fpr, tpr, color="#1E88E5", lw=2,
            label=f"AUC = {roc_auc_score(y_true, y_proba):.4f}")
    ax.plot([0, 1], [0, 1], color="gray", lw=1, linestyle="--")
    ax.set(xlabel="False positive rate", ylabel="True positive rate", xlim=(0, 1), ylim=(0, 1.01))
    ax.set_title("ROC Curve", fontweight="bold")
    ax.legend(loc="lower right")
    ax.grid(alpha=0.3)
    _save_figure(fig, output_path, "ROC curve")


def plot_pr_curve(y_true: np.ndarray, y_proba: np.ndarray, output_path: str) -> None:
    precision, recall, _ = precision_recall_curve(y_true, y_proba)
    fig, ax = plt.subplots(figsize=(8, 6))
    ax.plot(recall, precision, color="#43A047", lw=2,
            label=f"AP = {average_precision_score(y_true, y_proba):.4f}")
    ax.set(xlabel="Recall", ylabel="Precision", xlim=(0, 1), ylim=(0, 1.01))
    ax.set_title("Precision-Recall Curve", fontweight="bold")
    ax.legend(loc="lower left")
    ax.grid(alpha=0.3)
    _save_figure(fig, output_path, "PR curve")


# ------------------------------------------------------------------ #
#  Export                                                              #
# ------------------------------------------------------------------ #

def _to_native(obj):
    """numpy scalars/arrays -> plain Python for json."""
    if isinstance(obj, dict):
        return {k: _to_native(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_to_native(v) for v in obj]
    if isinstance(obj, np.generic):
        return obj.item()
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    return obj


def export_metrics(metrics: Dict[str, Any], output_dir: str, name: str = "metrics") -> str:
    """Write metrics to <output_dir>/<name>.json."""
    os.makedirs(output_dir, exist_ok=True)
    path = os.path.join(output_dir, f"{name}.json")
    with open(path, "w") as f:
        json.dump(_to_native(metrics), f, indent=2, default=str)
    logger.info("Metrics exported to %s", path)
    return path


def run_full_evaluation(
    y_true: np.ndarray,
    y_proba: np.ndarray,
    threshold: float,
    output_dir: str,
    class_names: List[str],
) -> Dict[str, Any]:
    """
    Score the evaluation split at `threshold`, draw plots and write
    evaluation_metrics.json.

    class_names is [negative class, positive class].
    """
    logger.info("=" * 60)
    logger.info("EVALUATION (threshold=%.4f)", threshold)
    logger.info("=" * 60)

    os.makedirs(output_dir, exist_ok=True)
    metrics = compute_binary_metrics(y_true, y_proba, threshold)
    metrics["class_names"] = list(class_names)

    if metrics["roc_auc"] is not None:
        plot_roc_curve(y_true, y_proba, os.path.join(output_dir, "roc_curve.png"))
        plot_pr_curve(y_true, y_proba, os.path.join(output_dir, "pr_curve.png"))
    else:
        logger.warning("Evaluation split holds a single class; skipping ROC/PR curves")

    y_pred = (np.asarray(y_proba) >= threshold).astype(int)
    plot_confusion_matrix(y_true, y_pred, class_names, os.path.join(output_dir, "confusion_matrix.png"))

    export_metrics(metrics, output_dir, "evaluation_metrics")
    return metrics
