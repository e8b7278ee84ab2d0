from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np

from memory_anchor.config import MATCH_THRESHOLD
from memory_anchor.face.types import EnrolledFace
from memory_anchor.utils.log import get_logger
from memory_anchor.utils.math import euclidean_distances

logger = get_logger(__name__)


@dataclass
class MatcherConfig:
    # Strict upper bound on Euclidean distance for a match (model-specific, see config.py).
    threshold: float = MATCH_THRESHOLD


class EuclideanMatcher:
    """Vectorized nearest-neighbour matcher over a registry snapshot.

    Stateless: every call works only on the snapshot passed in, so it is safe to
    call while the registry is being mutated. Exact distance ties resolve to the
    first record in snapshot order (`np.argmin` semantics); embeddings are
    continuous so this is accepted rather than broken artificially.
    """

    def __init__(self, config: Optional[MatcherConfig] = None):
        self.config = config or MatcherConfig()

    def _candidates(self, dim: int, snapshot: Sequence[EnrolledFace]) -> Tuple[List[EnrolledFace], Optional[np.ndarray]]:
        faces: List[EnrolledFace] = []
        rows: List[np.ndarray] = []
        for face in snapshot:
            emb = face.embedding
            # Skip incompatible dims (e.g. records enrolled with another model)
            if int(emb.shape[0]) != dim:
                logger.debug(f"跳过维度不一致的记录: {face.id} ({emb.shape[0]} != {dim})")
                continue
            faces.append(face)
            rows.append(emb)
        if not rows:
            return [], None
        return faces, np.stack(rows, axis=0)

    def nearest(self, query: np.ndarray, snapshot: Sequence[EnrolledFace]) -> Tuple[Optional[EnrolledFace], float]:
        """Return (closest record, distance) regardless of threshold; (None, inf) if nothing comparable."""
        q = np.asarray(query, dtype=np.float32).reshape(-1)
        if not snapshot or q.size == 0:
            return None, float("inf")
        faces, matrix = self._candidates(int(q.shape[0]), snapshot)
        if matrix is None:
            return None, float("inf")
        dists = euclidean_distances(q, matrix)
        best_idx = int(np.argmin(dists))
        return faces[best_idx], float(dists[best_idx])

    def match(self, query: np.ndarray, snapshot: Sequence[EnrolledFace]) -> Optional[EnrolledFace]:
        best, dist = self.nearest(query, snapshot)
        if best is not None and dist < float(self.config.threshold):
            return best
        return None
