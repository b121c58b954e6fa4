"""
Gradient-boosted tree trainer using LightGBM / XGBoost.

Min-max normalization followed by a boosted binary classifier, with
stratified K-fold cross-validation and artifact persistence.
"""

import os
import json
import time
import logging
import pickle
from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd
from sklearn.metrics import accuracy_score, f1_score, roc_auc_score
from sklearn.model_selection import StratifiedKFold

from .data_loader import LABEL_COL
from .features import assemble_matrix, build_normalizer, normalization_stats
from .records import ModelLoadError, TrainingDataError

logger = logging.getLogger(__name__)

MODEL_FILE = "model.pkl"
SCALER_FILE = "scaler.pkl"
META_FILE = "model_meta.json"


def _get_class_weights(y: np.ndarray) -> Dict[int, float]:
    """Compute balanced class weights."""
    from sklearn.utils.class_weight import compute_class_weight
    classes = np.unique(y)
    weights = compute_class_weight("balanced", classes=classes, y=y)
    return dict(zip(classes.astype(int), weights))


def _build_lightgbm(params: Dict[str, Any], seed: int, class_weights: Optional[Dict] = None):
    """Create a LightGBM binary classifier."""
    import lightgbm as lgb

    lgb_params = {k: v for k, v in params.items()}
    lgb_params["objective"] = "binary"
    lgb_params.setdefault("random_state", seed)
    lgb_params.setdefault("verbose", -1)
    if class_weights:
        lgb_params["scale_pos_weight"] = class_weights.get(1, 1.0) / class_weights.get(0, 1.0)
    return lgb.LGBMClassifier(**lgb_params)


def _build_xgboost(params: Dict[str, Any], seed: int, class_weights: Optional[Dict] = None):
    """Create an XGBoost binary classifier."""
    import xgboost as xgb

    xgb_params = {k: v for k, v in params.items()}
    # Leaf-wise growth so num_leaves means the same as in LightGBM
    num_leaves = xgb_params.pop("num_leaves", None)
    if num_leaves is not None:
        xgb_params.setdefault("max_leaves", num_leaves)
        xgb_params.setdefault("grow_policy", "lossguide")
        xgb_params.setdefault("tree_method", "hist")
    xgb_params["objective"] = "binary:logistic"
    xgb_params["eval_metric"] = "logloss"
    xgb_params.setdefault("random_state", seed)
    if class_weights:
        xgb_params["scale_pos_weight"] = class_weights.get(1, 1.0) / class_weights.get(0, 1.0)
    return xgb.XGBClassifier(**xgb_params)


class AnomalyModelTrainer:
    """
    Trainer for the traffic anomaly classifier.

    The fitted normalizer is kept and persisted with the model so inference
    reuses the training-set minimum/maximum.
    """

    def __init__(self, config: Dict[str, Any]):
        self.config = config
        self.model_type = config["model"]["type"]
        self.model_params = config["model"]["params"]
        self.seed = config["data"]["random_seed"]
        self.positive_class = config["labels"]["positive_class"]
        self.threshold = float(config["threshold"]["value"])
        self.scaler = build_normalizer()
        self.model = None
        self.feature_cols: Optional[List[str]] = None
        self.training_log: List[Dict[str, Any]] = []

    def _build_model(self, y: np.ndarray):
        class_weights = None
        if self.config["training"].get("use_weighted_loss", True):
            class_weights = _get_class_weights(y)
            logger.info("Class weights: %s", class_weights)

        if self.model_type == "lightgbm":
            model = _build_lightgbm(self.model_params, self.seed, class_weights)
        else:
            model = _build_xgboost(self.model_params, self.seed, class_weights)
        return model, class_weights

    @staticmethod
    def _check_trainable(y: np.ndarray) -> None:
        if len(y) == 0:
            raise TrainingDataError("Cannot train on an empty dataset")
        if len(np.unique(y)) < 2:
            raise TrainingDataError(
                f"Cannot train a binary classifier on a single class (label={int(y[0])})"
            )

    # ------------------------------------------------------------------ #
    #  Cross-validation                                                    #
    # ------------------------------------------------------------------ #

    def cross_validate(self, df: pd.DataFrame, feature_cols: List[str]) -> Optional[Dict[str, Any]]:
        """
        Stratified K-fold cross-validation of normalizer + classifier.

        Returns per-fold and averaged accuracy / AUC / F1, or None when a
        class has fewer than two samples.
        """
        logger.info("=" * 60)
        logger.info("CROSS-VALIDATION (%s)", self.model_type)
        logger.info("=" * 60)

        X = assemble_matrix(df, feature_cols)
        y = df[LABEL_COL].values.astype(int)
        self._check_trainable(y)

        requested = self.config["training"]["cv_folds"]
        min_class = int(np.bincount(y).min())
        n_folds = min(requested, min_class)
        if n_folds < 2:
            logger.warning("Skipping cross-validation: minority class has %d sample(s)", min_class)
            return None
        if n_folds < requested:
            logger.warning("Reducing folds from %d to %d (minority class size)", requested, n_folds)

        skf = StratifiedKFold(n_splits=n_folds, shuffle=True, random_state=self.seed)
        folds = []
        for fold, (train_idx, val_idx) in enumerate(skf.split(X, y)):
            scaler = build_normalizer()
            X_train = scaler.fit_transform(X[train_idx])
            X_val = scaler.transform(X[val_idx])

            model, _ = self._build_model(y[train_idx])
            model.fit(X_train, y[train_idx])

            proba = model.predict_proba(X_val)[:, 1]
            y_pred = (proba >= self.threshold).astype(int)
            try:
                auc = float(roc_auc_score(y[val_idx], proba))
            except ValueError:
                auc = None

            fold_metrics = {
                "fold": fold,
                "samples": int(len(val_idx)),
                "accuracy": float(accuracy_score(y[val_idx], y_pred)),
                "roc_auc": auc,
                "f1_score": float(f1_score(y[val_idx], y_pred, zero_division=0)),
            }
            folds.append(fold_metrics)
            logger.info("  Fold %d: accuracy=%.4f, AUC=%s, F1=%.4f",
                        fold, fold_metrics["accuracy"],
                        "n/a" if auc is None else f"{auc:.4f}", fold_metrics["f1_score"])

        aucs = [f["roc_auc"] for f in folds if f["roc_auc"] is not None]
        results = {
            "num_folds": n_folds,
            "threshold": self.threshold,
            "folds": folds,
            "mean_accuracy": float(np.mean([f["accuracy"] for f in folds])),
            "mean_roc_auc": float(np.mean(aucs)) if aucs else None,
            "mean_f1_score": float(np.mean([f["f1_score"] for f in folds])),
        }
        return results

    # ------------------------------------------------------------------ #
    #  Training                                                            #
    # ------------------------------------------------------------------ #

    def train(self, train_df: pd.DataFrame, feature_cols: List[str]) -> Dict[str, Any]:
        """Fit the normalizer and classifier on the training split."""
        logger.info("=" * 60)
        logger.info("TRAINING ANOMALY MODEL (%s)", self.model_type)
        logger.info("=" * 60)

        self.feature_cols = list(feature_cols)
        X = assemble_matrix(train_df, self.feature_cols)
        y = train_df[LABEL_COL].values.astype(int)
        self._check_trainable(y)

        X_train = self.scaler.fit_transform(X)
        self.model, class_weights = self._build_model(y)

        logger.info("Training with %d samples, %d features", len(X_train), len(self.feature_cols))
        start_time = time.time()
        self.model.fit(X_train, y)
        train_time = time.time() - start_time
        logger.info("Training completed in %.2f seconds", train_time)

        train_log = {
            "model_type": self.model_type,
            "params": dict(self.model_params),
            "train_time_seconds": round(train_time, 2),
            "n_features": len(self.feature_cols),
            "train_samples": len(X_train),
            "class_weights": {str(k): round(float(v), 4) for k, v in class_weights.items()} if class_weights else None,
        }
        self.training_log.append(train_log)
        return train_log

    def transform(self, X: np.ndarray) -> np.ndarray:
        """Normalize raw feature vectors with the training statistics."""
        if self.model is None:
            raise RuntimeError("Model has not been trained or loaded")
        X = np.asarray(X, dtype=np.float64)
        if X.ndim == 1:
            X = X.reshape(1, -1)
        return self.scaler.transform(X)

    def predict_proba(self, df: pd.DataFrame) -> np.ndarray:
        """Probability of the positive class for each row."""
        X = self.transform(assemble_matrix(df, self.feature_cols))
        return self.model.predict_proba(X)[:, 1]

    def predict(self, df: pd.DataFrame, threshold: Optional[float] = None) -> np.ndarray:
        """Thresholded 0/1 predictions (1 = positive class)."""
        t = self.threshold if threshold is None else threshold
        return (self.predict_proba(df) >= t).astype(int)

    # ------------------------------------------------------------------ #
    #  Persistence                                                         #
    # ------------------------------------------------------------------ #

    def save(self, output_dir: str) -> None:
        """Save model, normalizer and metadata."""
        if self.model is None:
            raise RuntimeError("Nothing to save: model has not been trained")
        os.makedirs(output_dir, exist_ok=True)

        with open(os.path.join(output_dir, MODEL_FILE), "wb") as f:
            pickle.dump(self.model, f)

        with open(os.path.join(output_dir, SCALER_FILE), "wb") as f:
            pickle.dump(self.scaler, f)

        meta = {
            "model_type": self.model_type,
            "feature_cols": self.feature_cols,
            "positive_class": self.positive_class,
            "threshold": self.threshold,
            "normalization": normalization_stats(self.scaler, self.feature_cols),
            "training_log": self.training_log,
        }
        with open(os.path.join(output_dir, META_FILE), "w") as f:
            json.dump(meta, f, indent=2, default=str)

        logger.info("Anomaly model saved to %s", output_dir)

    @classmethod
    def load(cls, output_dir: str, config: Dict[str, Any]) -> "AnomalyModelTrainer":
        """Load a saved model artifact; any failure raises ModelLoadError."""
        trainer = cls(config)
        try:
            with open(os.path.join(output_dir, MODEL_FILE), "rb") as f:
                trainer.model = pickle.load(f)

            with open(os.path.join(output_dir, SCALER_FILE), "rb") as f:
                trainer.scaler = pickle.load(f)

            with open(os.path.join(output_dir, META_FILE), "r") as f:
                meta = json.load(f)

            trainer.feature_cols = list(meta["feature_cols"])
            trainer.model_type = meta["model_type"]
            saved_class = meta["positive_class"]
            trainer.training_log = meta.get("training_log", [])
        except (OSError, EOFError, pickle.UnpicklingError, ImportError, AttributeError,
                ValueError, KeyError) as e:
            raise ModelLoadError(f"Could not load model from {output_dir}: {e}") from e

        if saved_class != trainer.positive_class:
            raise ModelLoadError(
                f"Model at {output_dir} was trained with positive_class={saved_class!r}, "
                f"config says {trainer.positive_class!r}"
            )
        if len(trainer.feature_cols) != getattr(trainer.scaler, "n_features_in_", len(trainer.feature_cols)):
            raise ModelLoadError(
                f"Normalizer in {output_dir} does not match {len(trainer.feature_cols)} feature column(s)"
            )

        logger.info("Anomaly model loaded from %s", output_dir)
        return trainer
