"""
Face Descriptor Module

Immutable fixed-length face descriptor produced by the embedding extractor
or by the reducer, plus the comma-joined text codec used by the store.
"""

from typing import Iterable, Iterator, Union

import numpy as np
from sklearn.preprocessing import normalize


class Descriptor:
    """Read-only float32 vector representing one face.

    Descriptors are value objects: the backing array is copied on creation
    and flagged non-writeable. Equality is identity;
    compare descriptors through the matcher.
    """

    __slots__ = ('_values',)

    def __init__(self, values: Union['Descriptor', Iterable[float], np.ndarray]):
        if isinstance(values, Descriptor):
            values = values.values
        arr = np.array(values, dtype=np.float32).reshape(-1)
        arr.flags.writeable = False
        self._values = arr

    @classmethod
    def normalized(cls, values) -> 'Descriptor':
        """
        Build a unit-length descriptor from a raw extractor output.

        A zero vector stays zero.

        Args:
            values: Raw embedding vector

        Returns:
            L2-normalized descriptor
        """
        arr = np.asarray(values, dtype=np.float64).reshape(1, -1)
        if arr.size == 0:
            return cls(arr.reshape(-1))
        return cls(normalize(arr, norm='l2')[0])

    @property
    def values(self) -> np.ndarray:
        return self._values

    @property
    def dim(self) -> int:
        return int(self._values.shape[0])

    def norm(self) -> float:
        return float(np.linalg.norm(self._values.astype(np.float64)))

    def __len__(self) -> int:
        return self.dim

    def __getitem__(self, index: int) -> float:
        return float(self._values[index])

    def __iter__(self) -> Iterator[float]:
        return (float(v) for v in self._values)

    def __repr__(self) -> str:
        return f"Descriptor(dim={self.dim}, norm={self.norm():.4f})"

    def to_text(self) -> str:
        """Serialize as comma-joined decimal text, e.g. ``"0.1,0.2"``."""
        return ','.join(repr(float(v)) for v in self._values)

    @classmethod
    def from_text(cls, data: str) -> 'Descriptor':
        """Parse text written by :meth:`to_text`. Empty text gives an empty descriptor."""
        if not data:
            return cls([])
        return cls([float(part) for part in data.split(',')])
