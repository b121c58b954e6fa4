"""
Console lines and Markdown report for training and prediction runs.
"""

import os
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from .records import PredictionResult

logger = logging.getLogger(__name__)


def _pct(value: Optional[float]) -> str:
    return "N/A" if value is None else f"{value:.2%}"


def format_cv_lines(cv_results: Optional[Dict[str, Any]]) -> List[str]:
    """Cross-validated accuracy / AUC / F1 as console lines."""
    if not cv_results:
        return ["Cross-validation skipped (not enough samples per class)"]
    return [
        f"Cross-validated Model accuracy: {_pct(cv_results['mean_accuracy'])}",
        f"AUC: {_pct(cv_results['mean_roc_auc'])}",
        f"F1 Score: {_pct(cv_results['mean_f1_score'])}",
    ]


def format_evaluation_lines(metrics: Dict[str, Any]) -> List[str]:
    return [
        f"Model accuracy: {_pct(metrics.get('accuracy'))}",
        f"AUC: {_pct(metrics.get('roc_auc'))}",
        f"F1 Score: {_pct(metrics.get('f1_score'))}",
    ]


def format_prediction_line(result: PredictionResult, index: Optional[int] = None) -> str:
    """One report line per scored record."""
    name = result.record_id or (f"#{index}" if index is not None else "record")
    return (
        f"{name}: Prediction: {result.verdict} (label={result.predicted_label}) | "
        f"Score: {result.score:.4f} | Probability: {result.probability:.4f}"
    )


def print_lines(lines: List[str]) -> None:
    for line in lines:
        print(line)


def generate_report(
    config: Dict[str, Any],
    data_metadata: Optional[Dict[str, Any]] = None,
    cv_results: Optional[Dict[str, Any]] = None,
    eval_metrics: Optional[Dict[str, Any]] = None,
    threshold_results: Optional[Dict[str, Any]] = None,
    predictions: Optional[List[PredictionResult]] = None,
    training_log: Optional[List[Dict]] = None,
    output_dir: str = "outputs/reports",
) -> str:
    """Generate a Markdown evaluation report."""
    logger.info("=" * 60)
    logger.info("GENERATING REPORT")
    logger.info("=" * 60)

    os.makedirs(output_dir, exist_ok=True)
    positive = config["labels"]["positive_class"]

    lines = [
        "# Network Traffic Anomaly Detection - Evaluation Report",
        "",
        f"**Generated:** {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}  ",
        f"**Model:** {config['model']['type']}  ",
        f"**Positive class (label=true):** {positive}  ",
        f"**Decision threshold:** {config['threshold']['value']}  ",
        f"**Seed:** {config['data']['random_seed']}  ",
        "",
        "---",
        "",
    ]

    # ---- 1. Dataset ----
    lines.extend(["## 1. Dataset", ""])
    if data_metadata:
        lines.extend([
            f"- **Total samples:** {data_metadata.get('total_rows', 'N/A')}",
            f"- **Features:** {', '.join(data_metadata.get('feature_columns', []))}",
            f"- **Train samples:** {data_metadata.get('train_rows', 'N/A')}",
            f"- **Test samples:** {data_metadata.get('test_rows', 'N/A')}",
            "",
        ])
        if data_metadata.get("evaluated_on_training_data"):
            lines.extend(["> Evaluation metrics were computed on the training data.", ""])
        warnings = data_metadata.get("data_quality", {}).get("warnings", [])
        if warnings:
            lines.extend(["### Data Quality Warnings", ""])
            lines.extend(f"- {w}" for w in warnings)
            lines.append("")
    else:
        lines.extend(["- N/A", ""])
    lines.extend(["---", ""])

    # ---- 2. Training ----
    if training_log:
        log = training_log[-1]
        lines.extend([
            "## 2. Training",
            "",
            f"- **Train time:** {log.get('train_time_seconds', 'N/A')} s",
            f"- **Parameters:** `{log.get('params', {})}`",
            f"- **Class weights:** {log.get('class_weights')}",
            "",
            "---",
            "",
        ])

    # ---- 3. Cross-validation ----
    lines.extend(["## 3. Cross-validation", ""])
    if cv_results:
        lines.extend([
            f"{cv_results['num_folds']} stratified folds.",
            "",
            "| Fold | Samples | Accuracy | AUC | F1 |",
            "| --- | --- | --- | --- | --- |",
        ])
        for fold in cv_results["folds"]:
            auc = "N/A" if fold["roc_auc"] is None else f"{fold['roc_auc']:.4f}"
            lines.append(
                f"| {fold['fold']} | {fold['samples']} | {fold['accuracy']:.4f} | {auc} | {fold['f1_score']:.4f} |"
            )
        lines.append("")
        lines.extend(f"- {line}" for line in format_cv_lines(cv_results))
        lines.append("")
    else:
        lines.extend(["- Skipped (not enough samples per class).", ""])
    lines.extend(["---", ""])

    # ---- 4. Hold-out evaluation ----
    if eval_metrics:
        lines.extend([
            "## 4. Evaluation",
            "",
            "| Metric | Value |",
            "| --- | --- |",
        ])
        for k in ["accuracy", "precision", "recall", "f1_score", "roc_auc",
                  "pr_auc", "false_positive_rate", "false_negative_rate"]:
            v = eval_metrics.get(k)
            if v is not None:
                lines.append(f"| {k.replace('_', ' ').title()} | {v:.4f} |")
        lines.extend([
            "",
            f"- **True Positives:** {eval_metrics.get('true_positives', 'N/A')}",
            f"- **True Negatives:** {eval_metrics.get('true_negatives', 'N/A')}",
            f"- **False Positives:** {eval_metrics.get('false_positives', 'N/A')}",
            f"- **False Negatives:** {eval_metrics.get('false_negatives', 'N/A')}",
            "",
            "---",
            "",
        ])

    # ---- 5. Threshold Calibration ----
    if threshold_results:
        configured = threshold_results.get("configured_threshold", {})
        lines.extend([
            "## 5. Threshold Calibration",
            "",
            f"**Configured threshold ({configured.get('threshold', 0):.4f}):** "
            f"F1={configured.get('f1_score', 0):.4f}, "
            f"FPR={configured.get('false_positive_rate', 0):.4f}, FNR={configured.get('false_negative_rate', 0):.4f}",
            "",
            "| Method | Threshold | F1 | FPR | FNR |",
            "| --- | --- | --- | --- | --- |",
        ])
        for method, data in threshold_results.get("calibration_methods", {}).items():
            m = data["metrics"]
            lines.append(
                f"| {method} | {data['threshold']:.4f} | {m['f1_score']:.4f} | "
                f"{m['false_positive_rate']:.4f} | {m['false_negative_rate']:.4f} |"
            )
        rec = threshold_results.get("recommended_threshold")
        if rec is not None:
            lines.append(f"\n**Suggested threshold:** {rec:.4f} "
                         f"(method: {threshold_results.get('recommended_method', 'N/A')})")
        lines.extend(["", "---", ""])

    # ---- 6. Predictions ----
    if predictions:
        lines.extend([
            "## 6. Sample Predictions",
            "",
            "| Record | Verdict | Label | Score | Probability |",
            "| --- | --- | --- | --- | --- |",
        ])
        for i, r in enumerate(predictions):
            lines.append(
                f"| {r.record_id or i} | {r.verdict} | {r.predicted_label} | "
                f"{r.score:.4f} | {r.probability:.4f} |"
            )
        lines.append("")

    lines.extend(["", "*Report generated by the Network Traffic Anomaly Detection pipeline.*"])

    report_path = os.path.join(output_dir, "report.md")
    with open(report_path, "w", encoding="utf-8") as f:
        f.write("\n".join(lines))

    logger.info("Report saved to %s", report_path)
    return report_path
