"""
Test three-valued logic and NULL detection.
"""

import unittest
from decimal import Decimal

import numpy as np
import pandas as pd
import pytest

from sqlagg import NULL, Truth, is_null

T, F_, U = Truth.TRUE, Truth.FALSE, Truth.UNKNOWN


class TestIsNull(unittest.TestCase):
    def test_null_representations(self):
        for value in (None, NULL, float('nan'), np.nan, pd.NA, pd.NaT):
            self.assertTrue(is_null(value), value)

    def test_non_null_values(self):
        for value in (0, 0.0, '', 'x', False, Decimal('1'), [], (None,)):
            self.assertFalse(is_null(value), value)

    def test_null_marker_is_singleton(self):
        self.assertIs(NULL, type(NULL)())
        self.assertEqual(NULL, NULL)
        self.assertEqual(hash(NULL), hash(type(NULL)()))


class TestTruthTables:
    @pytest.mark.parametrize(
        'left,right,expected',
        [
            (T, T, T), (T, F_, F_), (T, U, U),
            (F_, T, F_), (F_, F_, F_), (F_, U, F_),
            (U, T, U), (U, F_, F_), (U, U, U),
        ],
    )
    def test_and(self, left, right, expected):
        assert (left & right) is expected

    @pytest.mark.parametrize(
        'left,right,expected',
        [
            (T, T, T), (T, F_, T), (T, U, T),
            (F_, T, T), (F_, F_, F_), (F_, U, U),
            (U, T, T), (U, F_, U), (U, U, U),
        ],
    )
    def test_or(self, left, right, expected):
        assert (left | right) is expected

    def test_not(self):
        assert ~T is F_
        assert ~F_ is T
        assert ~U is U

    def test_xor(self):
        assert (T ^ F_) is T
        assert (T ^ T) is F_
        assert (U ^ T) is U

    def test_only_true_satisfies(self):
        assert T.is_satisfied()
        assert not F_.is_satisfied()
        assert not U.is_satisfied()

    def test_of_and_to_value(self):
        assert Truth.of(True) is T
        assert Truth.of(0) is F_
        assert Truth.of(None) is U
        assert Truth.of(float('nan')) is U
        assert U.to_value() is None
        assert T.to_value() is True
        assert F_.to_value() is False
