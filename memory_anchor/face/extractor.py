from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

import numpy as np


class EmbeddingExtractor(ABC):
    """Abstract face-embedding capability: image in, zero-or-one embedding out.

    Implementations may be slow (model inference); callers must not assume the
    call finishes within one scan tick.
    """

    @abstractmethod
    def extract(self, image: np.ndarray) -> Optional[np.ndarray]:
        """Return the embedding of the most prominent face, or None if no face.

        Args:
            image: decoded BGR image (H, W, 3)

        Returns:
            read-only 1D float32 vector (see `as_embedding`), or None
        """
        pass
