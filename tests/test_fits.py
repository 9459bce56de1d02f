"""
Unit tests for reading per-imputation results.
"""

import unittest
import pandas as pd
import numpy as np
from unittest.mock import Mock
import sys
from pathlib import Path

# Add src to path
sys.path.append(str(Path(__file__).parent.parent / "src"))

from mipool.data.fits import (
    ImputationFits, PerImputationEstimate, TIDY_COLUMNS, coefficient_table, tidy_estimates
)
from mipool.models.pooling import pool
from mipool.models.errors import TypeMismatchError


class Logit:
    """Stand-in for a link function object."""


def make_results(params, bse, df_resid=None, link=None):
    """Mock fitted-results object exposing params and bse."""
    attributes = ['params', 'bse']
    if df_resid is not None:
        attributes.append('df_resid')
    if link is not None:
        attributes.append('model')

    results = Mock(spec=attributes)
    results.params = pd.Series(params)
    results.bse = pd.Series(bse)
    if df_resid is not None:
        results.df_resid = df_resid
    if link is not None:
        results.model = Mock()
        results.model.family.link = link
    return results


class TestCoefficientTable(unittest.TestCase):
    """Test normalization of one imputation's results."""

    def test_from_dataframe(self):
        """Test tidy DataFrame input."""
        raw = pd.DataFrame({
            'term': ['a', 'b'],
            'estimate': [1, 2],
            'std.error': [0.1, 0.2],
            'statistic': [10.0, 10.0],
        })
        table = coefficient_table(raw)

        self.assertEqual(list(table.columns), TIDY_COLUMNS)
        self.assertEqual(list(table['term']), ['a', 'b'])
        self.assertEqual(table['estimate'].dtype, float)
        self.assertTrue(table['df'].isna().all())

    def test_dataframe_copy(self):
        """Test the returned table is independent of the input."""
        raw = pd.DataFrame({'term': ['a'], 'estimate': [1.0], 'std.error': [0.1], 'df': [9.0]})
        table = coefficient_table(raw)
        table.loc[0, 'estimate'] = 99.0
        self.assertEqual(raw.loc[0, 'estimate'], 1.0)

    def test_missing_columns(self):
        """Test DataFrame without required columns."""
        with self.assertRaises(TypeMismatchError):
            coefficient_table(pd.DataFrame({'term': ['a'], 'coef': [1.0]}))

    def test_from_records(self):
        """Test list of estimate records."""
        rows = [PerImputationEstimate('a', 1.0, 0.1, 30.0), PerImputationEstimate('b', 2.0, 0.2)]
        table = coefficient_table(rows)

        pd.testing.assert_frame_equal(table, tidy_estimates(rows))
        self.assertEqual(table.loc[0, 'df'], 30.0)
        self.assertTrue(np.isnan(table.loc[1, 'df']))

    def test_from_results_object(self):
        """Test fitted-results object with residual df."""
        results = make_results({'const': 0.5, 'x': 1.5}, {'const': 0.05, 'x': 0.25}, df_resid=48)
        table = coefficient_table(results)

        self.assertEqual(list(table['term']), ['const', 'x'])
        np.testing.assert_allclose(table['estimate'], [0.5, 1.5])
        np.testing.assert_allclose(table['std.error'], [0.05, 0.25])
        np.testing.assert_array_equal(table['df'], 48.0)

    def test_results_object_without_df(self):
        """Test fitted-results object without residual df."""
        table = coefficient_table(make_results({'x': 1.0}, {'x': 0.1}))
        self.assertTrue(table['df'].isna().all())

    def test_results_object_length_mismatch(self):
        """Test params and bse of different lengths."""
        with self.assertRaises(TypeMismatchError):
            coefficient_table(make_results({'x': 1.0, 'y': 2.0}, {'x': 0.1}))

    def test_empty_records(self):
        """Test a fit without terms."""
        table = coefficient_table([])

        self.assertEqual(list(table.columns), TIDY_COLUMNS)
        self.assertEqual(len(table), 0)

    def test_unrecognized(self):
        """Test unsupported inputs."""
        for bad in (42, "estimates", None, [1, 2]):
            with self.assertRaises(TypeMismatchError):
                coefficient_table(bad)


class TestImputationFits(unittest.TestCase):
    """Test the per-imputation results container."""

    def setUp(self):
        """Set up mock results for three imputations."""
        self.results = [
            make_results(
                {'const': 0.5 + d, 'x': 1.5 - d},
                {'const': 0.05, 'x': 0.25},
                df_resid=48,
                link='logit'
            )
            for d in (0.0, 0.02, -0.03)
        ]

    def test_from_results(self):
        """Test container built from results objects."""
        fits = ImputationFits.from_results(self.results)

        self.assertEqual(fits.m, 3)
        self.assertEqual(fits.link, 'logit')
        self.assertIsNone(fits.rank)
        self.assertIsNone(fits.pivot)

    def test_link_object(self):
        """Test link read from a link function object."""
        results = [make_results({'x': 1.0}, {'x': 0.1}, link=Logit())]
        self.assertEqual(ImputationFits.from_results(results).link, 'logit')

    def test_explicit_metadata(self):
        """Test explicit link, rank, pivot and dfcom."""
        fits = ImputationFits.from_results(
            self.results, link='log', rank=2, pivot=(1, 0), dfcom=40
        )
        self.assertEqual(fits.link, 'log')
        self.assertEqual(fits.rank, 2)
        self.assertEqual(fits.pivot, [1, 0])
        self.assertEqual(fits.dfcom, 40.0)

    def test_not_a_sequence(self):
        """Test a single table instead of a list of tables."""
        table = pd.DataFrame({'term': ['a'], 'estimate': [1.0], 'std.error': [0.1]})
        with self.assertRaises(TypeMismatchError):
            ImputationFits.from_results(table)

    def test_results_pool_like_tables(self):
        """Test results objects pool the same as equivalent tables."""
        tables = [
            pd.DataFrame({
                'term': list(r.params.index),
                'estimate': r.params.to_numpy(),
                'std.error': r.bse.to_numpy(),
                'df': 48.0
            })
            for r in self.results
        ]
        from_results = pool(ImputationFits.from_results(self.results))
        from_tables = pool(tables)

        pd.testing.assert_frame_equal(from_results.pooled, from_tables.pooled)
        self.assertEqual(from_results.link, 'logit')
        self.assertIsNone(from_tables.link)


if __name__ == '__main__':
    unittest.main()
