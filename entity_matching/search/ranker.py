"""Cosine similarity ranking."""

from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np

from entity_matching.embeddings.models import EmbeddingRecord
from entity_matching.logging_config import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class RankedCandidate:
    """A candidate that passed the similarity threshold."""

    entity_id: str
    score: float
    dimensions: int


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity of two vectors.

    Zero-magnitude vectors score 0.

    Raises:
        ValueError: If the vectors are empty or differ in length.
    """
    if len(a) != len(b):
        raise ValueError(
            f"Vectors must have same dimensions. Got {len(a)} and {len(b)}"
        )
    if len(a) == 0:
        raise ValueError("Vectors cannot be empty")

    left = np.asarray(a, dtype=np.float64)
    right = np.asarray(b, dtype=np.float64)
    norm = float(np.linalg.norm(left) * np.linalg.norm(right))
    if norm == 0.0:
        return 0.0
    return float(np.dot(left, right) / norm)


def magnitude(vector: Sequence[float]) -> float:
    if len(vector) == 0:
        return 0.0
    return float(np.linalg.norm(np.asarray(vector, dtype=np.float64)))


def normalize(vector: Sequence[float]) -> list[float]:
    """Scale to unit length; zero vectors are returned unchanged."""
    mag = magnitude(vector)
    if mag == 0.0:
        return list(vector)
    return (np.asarray(vector, dtype=np.float64) / mag).tolist()


def dot_product(a: Sequence[float], b: Sequence[float]) -> float:
    if len(a) != len(b):
        raise ValueError("Vectors must have same dimensions")
    return float(np.dot(np.asarray(a, dtype=np.float64), np.asarray(b, dtype=np.float64)))


class SimilarityRanker:
    """Ranks candidate embeddings against a reference vector."""

    def rank(
        self,
        reference: Sequence[float],
        candidates: Sequence[EmbeddingRecord],
        min_similarity: float,
        limit: int | None = None,
    ) -> list[RankedCandidate]:
        """Score, threshold and sort candidates.

        Candidates without a vector, or whose length differs from the
        reference, are excluded. Scores are clamped to [0, 1]. Ties keep
        input order.

        Args:
            reference: Reference vector.
            candidates: Candidate embedding records.
            min_similarity: Minimum score to keep.
            limit: Maximum candidates returned, None for all.

        Returns:
            Candidates ordered by descending score.
        """
        if len(reference) == 0:
            return []

        usable: list[EmbeddingRecord] = []
        for record in candidates:
            if not record.embedding:
                continue
            if len(record.embedding) != len(reference):
                logger.debug(
                    "Skipping embedding with mismatched dimensions",
                    extra={
                        "entity_id": record.entity_id,
                        "dimensions": len(record.embedding),
                        "expected": len(reference),
                    },
                )
                continue
            usable.append(record)

        if not usable:
            return []

        ref = np.asarray(reference, dtype=np.float64)
        matrix = np.asarray([r.embedding for r in usable], dtype=np.float64)

        with np.errstate(over="ignore", invalid="ignore"):
            ref_norm = np.linalg.norm(ref)
            norms = np.linalg.norm(matrix, axis=1) * ref_norm
            dots = matrix @ ref
            scores = np.divide(dots, norms, out=np.zeros_like(dots), where=norms != 0)

        finite = np.isfinite(scores)
        for idx in np.flatnonzero(~finite):
            logger.debug(
                "Skipping embedding with non-finite similarity",
                extra={"entity_id": usable[idx].entity_id},
            )
        # non-finite scores sort last and fall below any threshold
        scores = np.where(finite, np.clip(scores, 0.0, 1.0), -np.inf)

        order = np.argsort(-scores, kind="stable")

        ranked: list[RankedCandidate] = []
        for idx in order:
            score = float(scores[idx])
            if score < min_similarity:
                # sorted descending, nothing further can pass
                break
            record = usable[idx]
            ranked.append(
                RankedCandidate(
                    entity_id=record.entity_id,
                    score=score,
                    dimensions=len(record.embedding or []),
                )
            )
            if limit is not None and len(ranked) >= limit:
                break

        return ranked
