"""
Tests for the ANOVA module.
"""

import pytest
import numpy as np
import sys
import os
import math
from scipy import stats as scipy_stats

# Add the parent directory to the path to import the module
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from surveymath.math.anova import (
    anova_key, f_p_value, compare_groups, one_way_anova, group_values,
    anova, compute_anova, ANOVAResult
)
from surveymath.math.variables import Variable, extract_variables, NUMERIC, CATEGORICAL


class TestFPValue:
    """Tests for the F-statistic p-value transform."""

    def test_zero(self):
        assert f_p_value(0.0) == 1.0

    def test_monotonic_decreasing(self):
        values = [f_p_value(f) for f in [0.0, 0.5, 1.0, 4.0, 10.0, 50.0]]
        assert all(a > b for a, b in zip(values, values[1:]))

    def test_value(self):
        assert np.isclose(f_p_value(2.0), math.exp(-1.0))

    def test_bounded(self):
        for f in [0.0, 1e-9, 3.0, 1e6]:
            assert 0.0 <= f_p_value(f) <= 1.0


class TestOneWayAnova:
    """Tests for one_way_anova."""

    def test_matches_scipy_f(self):
        groups = {
            'a': [4.0, 5.0, 6.0, 5.5],
            'b': [7.0, 8.0, 6.5],
            'c': [5.0, 4.5, 6.0, 5.0, 5.5],
        }
        result = one_way_anova(groups, 'score', 'plan')
        expected = scipy_stats.f_oneway(*groups.values()).statistic

        assert np.isclose(result.f_statistic, expected)
        assert result.df_between == 2
        assert result.df_within == 9
        assert np.isclose(result.ss_between + result.ss_within,
                          np.sum((np.concatenate(list(groups.values())) - result.grand_mean) ** 2))

    def test_group_summary(self):
        result = one_way_anova({'x': [1, 2, 3], 'y': [7, 8, 9]}, 'score', 'plan')

        assert result.groups == ('x', 'y')
        assert result.group_means == {'x': 2.0, 'y': 8.0}
        assert result.group_sizes == {'x': 3, 'y': 3}
        assert result.grand_mean == 5.0
        assert result.numeric_variable == 'score'
        assert result.categorical_variable == 'plan'

    @pytest.mark.parametrize("spread", [0.5, 1.0, 3.0])
    def test_f_grows_with_separation(self, spread):
        """With the within-group spread fixed, moving groups apart raises F and lowers p."""
        base = np.array([1.0, 2.0, 3.0]) * spread
        shifts = [0.25, 0.5, 1.0, 2.0, 4.0, 8.0]
        results = [one_way_anova({'x': base, 'y': base + shift * spread}) for shift in shifts]

        f_values = [r.f_statistic for r in results]
        p_values = [r.p_value for r in results]
        assert all(a < b for a, b in zip(f_values, f_values[1:]))
        assert all(a > b for a, b in zip(p_values, p_values[1:]))
        assert len({round(r.ss_within, 9) for r in results}) == 1
        assert not results[0].significant
        assert results[-1].significant

    def test_identical_groups(self):
        result = one_way_anova({'x': [1, 2, 3], 'y': [1, 2, 3]})

        assert result.f_statistic == 0
        assert result.p_value == 1.0
        assert not result.significant

    def test_no_within_group_spread(self):
        """Undefined F is reported as 0, never NaN or infinity."""
        result = one_way_anova({'x': [1.0, 1.0], 'y': [2.0, 2.0]})

        assert result.ss_within == 0
        assert result.ms_within == 0
        assert result.f_statistic == 0
        assert result.p_value == 1.0

    def test_constant_data(self):
        result = one_way_anova({'x': [0.1, 0.1, 0.1], 'y': [0.1, 0.1]})

        assert result.ss_within == 0
        assert result.f_statistic == 0
        assert math.isfinite(result.ss_between)

    def test_singleton_groups(self):
        result = one_way_anova({'x': [1.0], 'y': [5.0]})

        assert result.df_within == 0
        assert result.f_statistic == 0
        assert result.p_value == 1.0

    def test_fewer_than_two_groups(self):
        assert one_way_anova({'x': [1, 2, 3]}) is None
        assert one_way_anova({'x': [1, 2, 3], 'y': []}) is None
        assert one_way_anova({}) is None


class TestPostHoc:
    """Tests for pairwise group comparisons."""

    def test_welch_statistic(self):
        a = np.array([1.0, 2.0, 3.0])
        b = np.array([4.0, 5.0, 6.0])
        comparison = compare_groups('a', a, 'b', b)
        expected = scipy_stats.ttest_ind(a, b, equal_var=False).statistic

        assert comparison.mean_difference == 3.0
        assert np.isclose(comparison.t_statistic, abs(expected))
        assert comparison.p_value < 0.05
        assert comparison.significant

    def test_zero_standard_error(self):
        comparison = compare_groups('a', np.array([2.0]), 'b', np.array([3.0]))

        assert comparison.mean_difference == 1.0
        assert comparison.t_statistic == 0
        assert comparison.p_value == 1.0
        assert not comparison.significant

    def test_all_pairs_listed(self):
        result = one_way_anova({'x': [1, 2], 'y': [3, 4], 'z': [5, 6]})
        pairs = [(c.group_a, c.group_b) for c in result.post_hoc]

        assert pairs == [('x', 'y'), ('x', 'z'), ('y', 'z')]
        assert all(c.mean_difference >= 0 for c in result.post_hoc)


class TestComputeAnova:
    """Tests for ANOVA over extracted Variables."""

    def test_groups_by_record_id(self):
        numeric = Variable('score', NUMERIC, (1.0, 2.0, 9.0, 10.0), ('a', 'b', 'c', 'd'))
        categorical = Variable('plan', CATEGORICAL, ('pro', 'basic', 'pro', 'basic'),
                               ('c', 'a', 'd', 'b'), {'pro': 2, 'basic': 2})

        groups = group_values(numeric, categorical)
        assert sorted(groups['basic'].tolist()) == [1.0, 2.0]
        assert sorted(groups['pro'].tolist()) == [9.0, 10.0]

        result = anova(numeric, categorical)
        assert result.group_means == {'pro': 9.5, 'basic': 1.5} or \
            result.group_means == {'basic': 1.5, 'pro': 9.5}

    def test_from_records(self):
        records = [
            {'responses': {'score': s, 'plan': p}}
            for s, p in [(1, 'basic'), (2, 'basic'), (3, 'basic'),
                         (8, 'pro'), (9, 'pro'), (10, 'pro')]
        ]
        results = compute_anova(extract_variables(records))

        assert list(results) == [anova_key('score', 'plan')]
        result = results['score_by_plan']
        assert isinstance(result, ANOVAResult)
        assert result.groups == ('basic', 'pro')
        assert result.significant

    def test_records_missing_either_answer_are_skipped(self):
        records = [
            {'responses': {'score': 1, 'plan': 'a'}},
            {'responses': {'score': 2}},
            {'responses': {'plan': 'b'}},
            {'responses': {'score': 3, 'plan': 'b'}},
            {'responses': {'score': 4, 'plan': 'a'}},
        ]
        result = compute_anova(extract_variables(records))['score_by_plan']

        assert sum(result.group_sizes.values()) == 3

    def test_sentiment_by_category(self):
        records = [
            {'responses': {'plan': p}, 'sentimentScore': s}
            for p, s in [('a', 0.1), ('a', 0.2), ('b', 0.8), ('b', 0.9)]
        ]
        results = compute_anova(extract_variables(records))

        assert 'sentiment_score_by_plan' in results

    def test_max_groups(self):
        records = [
            {'responses': {'score': i, 'city': f'c{i}', 'plan': 'a' if i < 15 else 'b'}}
            for i in range(30)
        ]
        variables = extract_variables(records)

        results = compute_anova(variables)
        assert 'score_by_city' not in results
        assert 'score_by_plan' in results

        unlimited = compute_anova(variables, max_groups=None)
        assert 'score_by_city' in unlimited

    def test_single_category(self):
        records = [{'responses': {'score': i, 'plan': 'a'}} for i in range(5)]
        assert compute_anova(extract_variables(records)) == {}

    def test_to_dict(self):
        result = one_way_anova({'x': [1, 2], 'y': [3, 4]}, 'score', 'plan').to_dict()

        assert result['groups'] == ['x', 'y']
        assert len(result['post_hoc']) == 1
        assert set(result['post_hoc'][0]) == {
            'group_a', 'group_b', 'mean_difference', 't_statistic', 'p_value', 'significant'
        }
