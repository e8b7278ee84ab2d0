from __future__ import annotations

import numpy as np


def l2_normalize(vec: np.ndarray, eps: float = 1e-12) -> np.ndarray:
    """L2-normalize a vector (or 2D array row-wise) safely."""
    arr = np.asarray(vec, dtype=np.float32)
    if arr.ndim == 1:
        denom = float(np.linalg.norm(arr))
        if denom < eps:
            return arr
        return arr / denom
    if arr.ndim == 2:
        norms = np.linalg.norm(arr, axis=1, keepdims=True)
        norms = np.maximum(norms, eps)
        return arr / norms
    raise ValueError(f"Unsupported ndim={arr.ndim}")


def euclidean_distance(a: np.ndarray, b: np.ndarray) -> float:
    """Euclidean distance for 1D vectors."""
    va = np.asarray(a, dtype=np.float32).reshape(-1)
    vb = np.asarray(b, dtype=np.float32).reshape(-1)
    if va.shape != vb.shape:
        raise ValueError(f"Dimension mismatch: {va.shape[0]} vs {vb.shape[0]}")
    return float(np.linalg.norm(va - vb))


def euclidean_distances(query: np.ndarray, matrix: np.ndarray) -> np.ndarray:
    """Distances from one (D,) query to every row of an (N, D) matrix."""
    q = np.asarray(query, dtype=np.float32).reshape(1, -1)
    mat = np.asarray(matrix, dtype=np.float32)
    if mat.ndim == 1:
        mat = mat.reshape(1, -1)
    return np.linalg.norm(mat - q, axis=1)
