"""Numeric routines over embedding vectors.

Pure functions: no I/O, no state. Vectors of different lengths carry no
comparable signal, so they score 0 rather than raising.
"""

from collections.abc import Sequence

import numpy as np


def _as_array(values: Sequence[float]) -> np.ndarray | None:
    try:
        array = np.asarray(values, dtype=np.float64)
    except (TypeError, ValueError):
        return None
    if array.ndim != 1 or not np.all(np.isfinite(array)):
        return None
    return array


def _unit_scaled(array: np.ndarray) -> np.ndarray | None:
    # Dividing by the largest magnitude keeps every component in [-1, 1], so
    # the dot product and norms stay finite for any finite input.
    peak = float(np.max(np.abs(array)))
    if peak == 0.0:
        return None
    return array / peak


def similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity of two embedding vectors.

    Returns 0.0 when the lengths differ (no signal, not an error), when either
    vector is empty or has zero norm, or when either holds a non-finite value.
    Otherwise returns dot(a, b) / (|a| * |b|), clipped to [-1, 1] to absorb
    floating-point overshoot. Magnitudes near the float limits are handled
    without overflow.

    Args:
        a: First vector.
        b: Second vector.

    Returns:
        Similarity in [-1, 1]; effectively [0, 1] for text embeddings.
    """
    if len(a) != len(b) or len(a) == 0:
        return 0.0

    va, vb = _as_array(a), _as_array(b)
    if va is None or vb is None or va.shape != vb.shape:
        return 0.0

    va, vb = _unit_scaled(va), _unit_scaled(vb)
    if va is None or vb is None:
        return 0.0

    denominator = float(np.linalg.norm(va)) * float(np.linalg.norm(vb))
    score = float(np.dot(va, vb)) / denominator
    if not np.isfinite(score):
        return 0.0
    return float(np.clip(score, -1.0, 1.0))
