"""
Anomaly Scorer - featurize, score and threshold traffic records.
"""

import logging
from typing import Any, Iterable, List, Optional

import numpy as np

from .features import RecordLike, assemble_features
from .records import PredictionResult, TrafficRecord, opposite_class

logger = logging.getLogger(__name__)

_EPS = 1e-15


def decide(probability: float, threshold: float) -> bool:
    """True (positive class) when probability >= threshold."""
    return bool(probability >= threshold)


def log_odds(probability: np.ndarray) -> np.ndarray:
    """Raw boosted-tree margin recovered from the sigmoid output."""
    p = np.clip(np.asarray(probability, dtype=np.float64), _EPS, 1.0 - _EPS)
    return np.log(p / (1.0 - p))


class AnomalyScorer:
    """
    Turns traffic records into PredictionResults.

    `classifier` is any object with predict_proba(X) returning the positive
    class probability either as an (n, 2) array or a flat (n,) array.
    `normalizer` is the min-max scaler fitted on the training set.
    """

    def __init__(
        self,
        classifier: Any,
        feature_cols: List[str],
        threshold: float,
        positive_class: str,
        normalizer: Optional[Any] = None,
    ):
        if not 0.0 <= threshold <= 1.0:
            raise ValueError(f"threshold must be within [0, 1], got {threshold}")
        self.classifier = classifier
        self.feature_cols = list(feature_cols)
        self.threshold = float(threshold)
        self.positive_class = positive_class
        self.negative_class = opposite_class(positive_class)
        self.normalizer = normalizer

    @classmethod
    def from_trainer(cls, trainer, threshold: Optional[float] = None) -> "AnomalyScorer":
        """Build a scorer around a trained or loaded AnomalyModelTrainer."""
        if trainer.model is None:
            raise RuntimeError("Model has not been trained or loaded")
        return cls(
            classifier=trainer.model,
            feature_cols=trainer.feature_cols,
            threshold=trainer.threshold if threshold is None else threshold,
            positive_class=trainer.positive_class,
            normalizer=trainer.scaler,
        )

    def verdict(self, predicted_label: bool) -> str:
        return self.positive_class if predicted_label else self.negative_class

    def featurize(self, records: Iterable[RecordLike]) -> np.ndarray:
        vectors = [assemble_features(r, self.feature_cols) for r in records]
        if not vectors:
            return np.empty((0, len(self.feature_cols)))
        X = np.vstack(vectors)
        if self.normalizer is not None:
            X = self.normalizer.transform(X)
        return X

    def _probabilities(self, X: np.ndarray) -> np.ndarray:
        proba = np.asarray(self.classifier.predict_proba(X), dtype=np.float64)
        if proba.ndim == 2:
            proba = proba[:, 1]
        if proba.shape[0] != X.shape[0]:
            raise ValueError(
                f"Classifier returned {proba.shape[0]} probabilities for {X.shape[0]} records"
            )
        return proba

    def score(self, record: RecordLike) -> PredictionResult:
        """Score a single record."""
        return self.score_batch([record])[0]

    def score_batch(self, records: Iterable[RecordLike]) -> List[PredictionResult]:
        """Score records, preserving input order."""
        records = list(records)
        X = self.featurize(records)
        if len(records) == 0:
            return []

        proba = self._probabilities(X)
        raw = log_odds(proba)

        results = []
        for record, p, s, x in zip(records, proba, raw, X):
            label = decide(p, self.threshold)
            record_id = record.record_id if isinstance(record, TrafficRecord) else None
            results.append(PredictionResult(
                predicted_label=label,
                score=float(s),
                probability=float(p),
                verdict=self.verdict(label),
                threshold=self.threshold,
                record_id=record_id,
                features=dict(zip(self.feature_cols, (float(v) for v in x))),
            ))

        logger.debug("Scored %d record(s) at threshold %.4f", len(results), self.threshold)
        return results
