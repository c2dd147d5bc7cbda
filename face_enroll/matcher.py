"""
Descriptor Matching Module

Cosine similarity between unit-normalized descriptors and the threshold
decision used for identity equality.
"""

import numpy as np

from .descriptor import Descriptor
from .exceptions import DimensionMismatch

# Chosen empirically for the deployed extractor.
DEFAULT_THRESHOLD = 0.75


def _as_vector(value) -> np.ndarray:
    if isinstance(value, Descriptor):
        value = value.values
    return np.asarray(value, dtype=np.float64).reshape(-1)


def similarity(a, b) -> float:
    """
    Dot product of two descriptors.

    For unit-length inputs this equals cosine similarity in [-1.0, 1.0].
    No re-normalization is applied.

    Args:
        a: First descriptor
        b: Second descriptor

    Returns:
        Similarity score

    Raises:
        DimensionMismatch: If the descriptors differ in length
    """
    va = _as_vector(a)
    vb = _as_vector(b)
    if va.shape[0] != vb.shape[0]:
        raise DimensionMismatch(va.shape[0], vb.shape[0])
    return float(np.dot(va, vb))


def is_match(a, b, threshold: float = DEFAULT_THRESHOLD) -> bool:
    """True when similarity strictly exceeds the threshold."""
    return similarity(a, b) > threshold
