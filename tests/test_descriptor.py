"""
Test cases for the Descriptor value object.
"""

import os
import sys

import numpy as np
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from face_enroll.descriptor import Descriptor


def test_normalized_has_unit_norm():
    d = Descriptor.normalized(np.arange(1, 193, dtype=np.float32))
    assert d.dim == 192
    assert d.norm() == pytest.approx(1.0, abs=1e-6)


def test_zero_vector_stays_zero():
    d = Descriptor.normalized(np.zeros(8))
    assert d.norm() == 0.0


def test_values_are_read_only():
    d = Descriptor([1.0, 2.0])
    with pytest.raises(ValueError):
        d.values[0] = 5.0


def test_source_array_is_copied():
    source = np.array([1.0, 2.0], dtype=np.float32)
    d = Descriptor(source)
    source[0] = 9.0
    assert d[0] == 1.0


def test_text_round_trip_is_exact():
    d = Descriptor.normalized(np.random.default_rng(11).normal(size=192))
    parsed = Descriptor.from_text(d.to_text())
    np.testing.assert_array_equal(parsed.values, d.values)


def test_text_format_is_comma_joined():
    assert Descriptor([0.5, -0.25]).to_text() == "0.5,-0.25"
    assert Descriptor.from_text("0.5,-0.25")[1] == -0.25


def test_empty_text_parses_to_empty_descriptor():
    assert len(Descriptor.from_text("")) == 0
