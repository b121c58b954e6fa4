"""
Master pipeline orchestrator for network traffic anomaly detection.

train:
1. Data loading, validation & data-quality report
2. Stratified K-fold cross-validation
3. Model training
4. Evaluation at the configured threshold
5. Threshold calibration
6. Artifact persistence & report

predict:
1. Load persisted model + normalizer
2. Score configured sample rows or a CSV of rows
3. Print one line per record
"""

import os
import sys
import json
import logging
import argparse
import random
from typing import Any, Dict, Iterable, List, Mapping, Optional

import numpy as np
import pandas as pd

from .config_loader import feature_columns, load_config, save_config_snapshot
from .data_loader import (
    LABEL_COL,
    frame_to_records,
    load_csv,
    rows_to_frame,
    run_data_pipeline,
    save_metadata,
)
from .evaluator import export_metrics, run_full_evaluation
from .records import (
    MalformedInputError,
    ModelLoadError,
    PredictionResult,
    TrainingDataError,
    opposite_class,
)
from .report_generator import (
    format_cv_lines,
    format_evaluation_lines,
    format_prediction_line,
    generate_report,
    print_lines,
)
from .scorer import AnomalyScorer
from .threshold_calibrator import calibrate_threshold
from .trainer import AnomalyModelTrainer

logger = logging.getLogger(__name__)


def setup_logging(config: Dict[str, Any]) -> None:
    """Configure logging."""
    log_level = config.get("logging", {}).get("level", "INFO")
    log_format = config.get("logging", {}).get(
        "format", "%(asctime)s | %(name)-35s | %(levelname)-8s | %(message)s"
    )
    log_file = config.get("logging", {}).get("log_file")

    handlers = [logging.StreamHandler(sys.stderr)]
    if log_file:
        os.makedirs(os.path.dirname(log_file) or ".", exist_ok=True)
        handlers.append(logging.FileHandler(log_file, mode="w", encoding="utf-8"))

    logging.basicConfig(
        level=getattr(logging, str(log_level).upper(), logging.INFO),
        format=log_format,
        handlers=handlers,
        force=True,
    )


def set_seed(seed: int) -> None:
    """Set deterministic seed for reproducibility."""
    random.seed(seed)
    np.random.seed(seed)


# ------------------------------------------------------------------ #
#  Training                                                            #
# ------------------------------------------------------------------ #

def run_training(config: Dict[str, Any], df: Optional[pd.DataFrame] = None) -> Dict[str, Any]:
    """
    Execute the training and evaluation pipeline.

    `df` replaces the configured CSV when given (literal rows).
    """
    seed = config["data"]["random_seed"]
    set_seed(seed)
    positive = config["labels"]["positive_class"]

    logger.info("=" * 70)
    logger.info("  NETWORK TRAFFIC ANOMALY PIPELINE - TRAIN")
    logger.info("  Model: %s | Positive class: %s | Threshold: %.2f | Seed: %d",
                config["model"]["type"], positive, config["threshold"]["value"], seed)
    logger.info("=" * 70)

    output_dir = config["paths"]["output_dir"]
    save_config_snapshot(config, os.path.join(output_dir, "config_used.yaml"))

    # STAGE 1: DATA
    train_df, test_df, feature_cols, data_metadata = run_data_pipeline(config, df)
    save_metadata(data_metadata, config["paths"]["metrics_dir"])

    trainer = AnomalyModelTrainer(config)

    # STAGE 2: CROSS-VALIDATION on all labelled rows
    all_df = train_df if data_metadata["evaluated_on_training_data"] else pd.concat(
        [train_df, test_df], ignore_index=True
    )
    cv_results = trainer.cross_validate(all_df, feature_cols)
    if cv_results:
        export_metrics(cv_results, config["paths"]["metrics_dir"], "cv_metrics")

    # STAGE 3: TRAINING
    train_log = trainer.train(train_df, feature_cols)
    trainer.save(config["paths"]["model_dir"])

    # STAGE 4: EVALUATION
    y_true = test_df[LABEL_COL].values.astype(int)
    y_proba = trainer.predict_proba(test_df)
    class_names = [opposite_class(positive), positive]
    eval_metrics = run_full_evaluation(
        y_true=y_true,
        y_proba=y_proba,
        threshold=trainer.threshold,
        output_dir=config["paths"]["metrics_dir"],
        class_names=class_names,
    )

    # STAGE 5: THRESHOLD CALIBRATION
    threshold_results = calibrate_threshold(
        y_true=y_true,
        y_proba=y_proba,
        config=config,
        output_dir=config["paths"]["metrics_dir"],
    )

    # STAGE 6: SAMPLE PREDICTIONS & REPORT
    predictions = []
    samples = config["prediction"].get("samples") or []
    if samples:
        scorer = AnomalyScorer.from_trainer(trainer)
        predictions = scorer.score_batch(_sample_records(samples, config))

    report_path = generate_report(
        config=config,
        data_metadata=data_metadata,
        cv_results=cv_results,
        eval_metrics=eval_metrics,
        threshold_results=threshold_results,
        predictions=predictions,
        training_log=[train_log],
        output_dir=config["paths"]["reports_dir"],
    )

    lines = format_cv_lines(cv_results) + format_evaluation_lines(eval_metrics)
    lines += [format_prediction_line(r, i) for i, r in enumerate(predictions)]
    print_lines(lines)

    logger.info("=" * 70)
    logger.info("  PIPELINE COMPLETE")
    logger.info("  Report: %s", report_path)
    logger.info("  Model: %s", config["paths"]["model_dir"])
    logger.info("=" * 70)

    return {
        "data_metadata": data_metadata,
        "cv_results": cv_results,
        "eval_metrics": eval_metrics,
        "threshold_results": threshold_results,
        "predictions": predictions,
        "report_path": report_path,
        "trainer": trainer,
    }


# ------------------------------------------------------------------ #
#  Prediction                                                          #
# ------------------------------------------------------------------ #

def _sample_records(rows: Iterable[Mapping[str, Any]], config: Dict[str, Any]):
    return frame_to_records(rows_to_frame(rows), config)


def run_prediction(
    config: Dict[str, Any],
    rows: Optional[List[Mapping[str, Any]]] = None,
    input_path: Optional[str] = None,
) -> List[PredictionResult]:
    """
    Score literal rows, a CSV of rows, or the configured samples with the
    persisted model.
    """
    model_dir = config["paths"]["model_dir"]
    trainer = AnomalyModelTrainer.load(model_dir, config)

    configured_cols = feature_columns(config)
    if configured_cols != trainer.feature_cols:
        logger.warning("Configured features %s differ from the model's %s; using the model's",
                       configured_cols, trainer.feature_cols)

    input_path = input_path or config["prediction"].get("input_path")
    if rows is not None:
        records = _sample_records(rows, config)
    elif input_path:
        records = frame_to_records(load_csv(input_path, config), config)
    else:
        records = _sample_records(config["prediction"].get("samples") or [], config)

    logger.info("Scoring %d record(s) at threshold %.4f", len(records), trainer.threshold)
    scorer = AnomalyScorer.from_trainer(trainer)
    results = scorer.score_batch(records)

    print_lines([format_prediction_line(r, i) for i, r in enumerate(results)])

    out_path = os.path.join(config["paths"]["output_dir"], "predictions.json")
    os.makedirs(config["paths"]["output_dir"], exist_ok=True)
    with open(out_path, "w") as f:
        json.dump([r.to_dict() for r in results], f, indent=2)
    logger.info("Predictions saved to %s", out_path)

    return results


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Network Traffic Anomaly Detection Pipeline")
    parser.add_argument("command", choices=["train", "predict"], help="Pipeline stage to run")
    parser.add_argument("--config", type=str, default="config/anomaly_config.yaml",
                        help="Path to configuration file")
    parser.add_argument("--data", type=str, default=None,
                        help="Training CSV (overrides data.path)")
    parser.add_argument("--input", type=str, default=None,
                        help="CSV of rows to score (predict only)")
    parser.add_argument("--model", type=str, choices=["lightgbm", "xgboost"], default=None,
                        help="Model type (overrides model.type)")
    parser.add_argument("--threshold", type=float, default=None,
                        help="Decision threshold (overrides threshold.value)")
    args = parser.parse_args(argv)

    config = load_config(args.config)
    if args.data:
        config["data"]["path"] = args.data
    if args.model:
        config["model"]["type"] = args.model
    if args.threshold is not None:
        if not 0.0 <= args.threshold <= 1.0:
            parser.error("--threshold must be within [0, 1]")
        config["threshold"]["value"] = args.threshold

    setup_logging(config)

    try:
        if args.command == "train":
            run_training(config)
        else:
            run_prediction(config, input_path=args.input)
    except ModelLoadError as e:
        logger.error("Fatal: %s", e)
        return 1
    except MalformedInputError as e:
        logger.error("Malformed input: %s", e)
        return 2
    except TrainingDataError as e:
        logger.error("Training aborted: %s", e)
        return 3
    return 0


if __name__ == "__main__":
    sys.exit(main())
