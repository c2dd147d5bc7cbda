"""
Descriptor Reduction Module

Combines the descriptors captured for one identity into a single template.
"""

from typing import Sequence

import numpy as np

from .descriptor import Descriptor
from .exceptions import DimensionMismatch, EmptyInput


def average(descriptors: Sequence[Descriptor]) -> Descriptor:
    """
    Elementwise arithmetic mean of the given descriptors.

    The result is not re-normalized, so it is generally shorter than unit
    length.

    Args:
        descriptors: Non-empty sequence of equal-length descriptors

    Returns:
        Mean descriptor

    Raises:
        EmptyInput: If no descriptors are given
        DimensionMismatch: If the descriptors differ in length
    """
    if len(descriptors) == 0:
        raise EmptyInput("Cannot average an empty descriptor list")

    vectors = [Descriptor(d).values for d in descriptors]
    dim = vectors[0].shape[0]
    for vec in vectors[1:]:
        if vec.shape[0] != dim:
            raise DimensionMismatch(dim, vec.shape[0])

    stacked = np.stack(vectors, axis=0)
    return Descriptor(np.mean(stacked, axis=0, dtype=np.float64))
