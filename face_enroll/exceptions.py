"""
Error Taxonomy

Exceptions raised by the enrollment core and its collaborator adapters.
"""


class FaceEnrollError(Exception):
    """Base class for all face enrollment errors."""


class DimensionMismatch(FaceEnrollError, ValueError):
    """Descriptors of inconsistent length were combined or compared."""

    def __init__(self, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(f"Descriptor dimension mismatch: expected {expected}, got {actual}")


class EmptyInput(FaceEnrollError, ValueError):
    """The reducer was given no descriptors."""


class ExtractionFailed(FaceEnrollError):
    """The embedding extractor could not process a face crop."""


class StoreWriteFailed(FaceEnrollError):
    """The persistent store did not confirm a write."""
