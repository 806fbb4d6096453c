"""
Tests for the full survey analysis pass.
"""

import pytest
import numpy as np
import sys
import os
import json
from pydantic import ValidationError

# Add the parent directory to the path to import the module
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from surveymath.components.config import Config, ConfigManager
from surveymath.survey.analysis import SurveyAnalysis, analyze_survey, time_based_seed


ROWS = [
    # rating, effort, plan, sentiment
    (9, 2, 'pro', 0.8),
    (8, 3, 'pro', 0.7),
    (10, 1, 'pro', 0.9),
    (9, 2, 'pro', 0.6),
    (8, 2, 'pro', 0.75),
    (9, 1, 'pro', 0.85),
    (3, 8, 'basic', -0.6),
    (2, 9, 'basic', -0.7),
    (4, 7, 'basic', -0.4),
    (3, 9, 'basic', -0.8),
    (2, 8, 'basic', -0.5),
    (4, 7, 'basic', -0.65),
]


def survey_records():
    """Twelve responses falling into two clear segments."""
    return [
        {
            'id': f"resp-{i}",
            'responses': {'rating': str(rating), 'effort': effort, 'plan': plan},
            'sentimentScore': sentiment,
            'createdAt': '2024-05-01T10:00:00Z',
        }
        for i, (rating, effort, plan, sentiment) in enumerate(ROWS)
    ]


def seeded_config(**clustering):
    clustering.setdefault('random-seed', 1234)
    return Config({'clustering': clustering})


class TestSurveyAnalysis:
    """Tests for SurveyAnalysis."""

    def test_recompute(self):
        analysis = SurveyAnalysis(survey_records(), seeded_config()).recompute()

        assert analysis.computed
        assert list(analysis.variables) == ['rating', 'effort', 'plan', 'sentiment_score']
        assert set(analysis.statistics) == {'rating', 'effort', 'sentiment_score'}
        assert len(analysis.correlations) == 3
        assert set(analysis.anova) == {
            'rating_by_plan', 'effort_by_plan', 'sentiment_score_by_plan'
        }
        assert [p.k for p in analysis.clusters] == [2, 3, 4, 5]

    def test_results_reflect_the_data(self):
        config = seeded_config(**{'n-init': 5})
        analysis = SurveyAnalysis(survey_records(), config).recompute()

        rating_effort = next(c for c in analysis.correlations
                             if {c.variable_a, c.variable_b} == {'rating', 'effort'})
        assert rating_effort.coefficient < -0.9
        assert rating_effort.significance == 'very significant'

        assert analysis.anova['rating_by_plan'].significant
        assert analysis.statistics['rating'].n == 12

        k2 = analysis.clusters[0]
        segments = sorted(sorted(k2.row_names[i] for i in m) for m in k2.members)
        assert segments == [
            sorted(f"resp-{i}" for i in range(6)),
            sorted(f"resp-{i}" for i in range(6, 12)),
        ]
        assert k2.silhouette_score > 0.5

    def test_recompute_returns_a_copy(self):
        analysis = SurveyAnalysis(survey_records(), seeded_config())
        result = analysis.recompute()

        assert result is not analysis
        assert not analysis.computed
        assert analysis.variables == {}
        assert analysis.clusters == []

    def test_configured_seed_is_reported(self):
        analysis = SurveyAnalysis(survey_records(), seeded_config()).recompute()
        assert analysis.random_seed == 1234

    def test_time_based_seed_is_reported(self):
        config = Config({'clustering': {'random-seed': None}})
        analysis = SurveyAnalysis(survey_records(), config).recompute()

        assert isinstance(analysis.random_seed, int)
        assert 0 <= analysis.random_seed < 2 ** 32

    def test_reproducible_with_seed(self):
        first = analyze_survey(survey_records(), seeded_config())
        second = analyze_survey(survey_records(), seeded_config())
        assert first == second

    def test_clustering_variables(self):
        config = seeded_config(variables=['rating'])
        analysis = SurveyAnalysis(survey_records(), config).recompute()

        assert len(analysis.clusters[0].centroids[0]) == 1

    def test_k_bounds(self):
        config = seeded_config(**{'k-min': 3, 'k-max': 4, 'n-init': 3})
        analysis = SurveyAnalysis(survey_records(), config).recompute()

        assert [p.k for p in analysis.clusters] == [3, 4]

    def test_small_survey_has_no_clusters(self):
        analysis = SurveyAnalysis(survey_records()[:4], seeded_config()).recompute()

        assert analysis.clusters == []
        assert analysis.statistics['rating'].n == 4

    def test_empty_survey(self):
        analysis = SurveyAnalysis([], seeded_config()).recompute()

        assert analysis.variables == {}
        assert analysis.correlations == []
        assert analysis.anova == {}
        assert analysis.clusters == []

    def test_invalid_record(self):
        with pytest.raises(ValidationError):
            SurveyAnalysis([{'responses': ['not', 'a', 'mapping']}])

    def test_summary(self):
        summary = SurveyAnalysis(survey_records(), seeded_config()).recompute().get_summary()

        assert summary == {
            'record_count': 12,
            'variable_count': 4,
            'numeric_count': 3,
            'correlation_count': 3,
            'anova_count': 3,
            'cluster_ks': [2, 3, 4, 5],
        }


class TestSerialization:
    """Tests for the serialized analysis output."""

    def test_output_is_strict_json(self):
        result = analyze_survey(survey_records(), seeded_config())

        # allow_nan=False fails on any NaN or infinity
        encoded = json.dumps(result, allow_nan=False)
        assert json.loads(encoded) == result

    def test_output_keys(self):
        result = analyze_survey(survey_records(), seeded_config())

        assert set(result) == {
            'record_count', 'random_seed', 'variables', 'statistics', 'outliers',
            'categorical_statistics', 'correlations', 'anova', 'clusters', 'labels'
        }
        assert result['variables']['plan'] == {
            'kind': 'categorical', 'n': 12, 'counts': {'pro': 6, 'basic': 6}
        }
        assert result['clusters'][0]['row_names'][0] == 'resp-0'

    def test_outliers_and_categorical_statistics(self):
        result = analyze_survey(survey_records(), seeded_config())

        assert set(result['outliers']) == {'rating', 'effort', 'sentiment_score'}
        assert result['outliers']['rating']['outliers'] == []
        assert result['outliers']['rating']['iqr'] == 6.0

        plan = result['categorical_statistics']['plan']
        assert plan['n'] == 12
        assert plan['percentages'] == {'pro': 50.0, 'basic': 50.0}
        assert plan['most_frequent'] == 'pro'
        assert plan['least_frequent'] == 'basic'
        assert plan['unique_count'] == 2

    def test_correlation_labels(self):
        result = analyze_survey(survey_records(), seeded_config())

        rating_effort = next(c for c in result['correlations']
                             if {c['variable_a'], c['variable_b']} == {'rating', 'effort'})
        assert rating_effort['strength'] == 'very strong'
        assert rating_effort['direction'] == 'negative'

    def test_degenerate_output_is_finite(self):
        records = [{'responses': {'a': 1, 'b': 2, 'c': 'x'}} for _ in range(8)]
        result = analyze_survey(records, seeded_config())

        json.dumps(result, allow_nan=False)
        assert result['statistics']['a']['standard_deviation'] == 0
        assert result['correlations'][0]['coefficient'] == 0
        assert result['anova'] == {}
        for partition in result['clusters']:
            assert np.isfinite(partition['silhouette_score'])

    def test_display_names(self):
        config = Config({
            'clustering': {'random-seed': 1},
            'display-names': {'rating': 'Overall rating', 'unknown': 'Unused'}
        })
        result = analyze_survey(survey_records(), config)

        assert result['labels'] == {'rating': 'Overall rating'}


class TestDefaults:
    """Tests for analysis without an explicit configuration."""

    def setup_method(self):
        ConfigManager.reset()

    def teardown_method(self):
        ConfigManager.reset()

    def test_default_config_ignores_shared_config(self):
        ConfigManager.get_config({'clustering': {'random-seed': 99, 'k-max': 2}})
        analysis = SurveyAnalysis(survey_records())

        assert analysis.config is not ConfigManager.get_config()
        assert analysis.config.get('clustering.k-max') == 5
        assert analysis.config.get('clustering.random-seed') is None

        result = analyze_survey(survey_records())
        assert [p['k'] for p in result['clusters']] == [2, 3, 4, 5]

    def test_analyses_do_not_share_config(self):
        first = SurveyAnalysis(survey_records())
        second = SurveyAnalysis(survey_records())

        assert first.config is not second.config

    def test_shared_config_when_passed(self):
        shared = ConfigManager.get_config({'clustering': {'random-seed': 99, 'k-max': 2}})
        result = analyze_survey(survey_records(), shared)

        assert result['random_seed'] == 99
        assert [p['k'] for p in result['clusters']] == [2]

    def test_time_based_seed(self):
        assert 0 <= time_based_seed() < 2 ** 32
