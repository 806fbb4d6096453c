"""
Full analysis pass over one survey's responses.

This module ties the math modules together: it extracts variables from the
response records and computes descriptive statistics, correlations, ANOVA
results and the cluster sweep, producing one self-contained, serializable
result. Nothing is shared between analyses, so separate surveys can be
analyzed concurrently.
"""

import logging
import time
from copy import copy
from typing import Any, Dict, Iterable, List, Optional

from surveymath.components.config import Config
from surveymath.math.anova import ANOVAResult, compute_anova
from surveymath.math.clusters import ClusterPartition
from surveymath.math.corr import CorrelationResult, compute_correlations
from surveymath.math.named_matrix import build_cluster_matrix
from surveymath.math.stats import (
    CategoricalSummary, OutlierSummary, StatisticalSummary,
    describe_categorical_variables, describe_variables, outliers_by_variable
)
from surveymath.math.sweep import sweep_named_matrix
from surveymath.math.variables import RecordLike, Variable, extract_variables, parse_records
from surveymath.utils.general import to_builtin

logger = logging.getLogger(__name__)


def time_based_seed() -> int:
    """Seed derived from the wall clock, for runs without a configured seed."""
    return time.time_ns() % (2 ** 32)


class SurveyAnalysis:
    """
    Holds the records of one survey and the results computed from them.
    """

    def __init__(self,
                 records: Iterable[RecordLike],
                 config: Optional[Config] = None):
        """
        Initialize an analysis.

        Args:
            records: Response records (ResponseRecord models or dicts)
            config: Configuration (defaults to a fresh Config with default values)

        Raises:
            pydantic.ValidationError: If a record does not match the input contract
        """
        self.records = parse_records(records)
        self.config = config if config is not None else Config()

        self.random_seed: Optional[int] = None
        self.variables: Dict[str, Variable] = {}
        self.statistics: Dict[str, StatisticalSummary] = {}
        self.outliers: Dict[str, OutlierSummary] = {}
        self.categorical_statistics: Dict[str, CategoricalSummary] = {}
        self.correlations: List[CorrelationResult] = []
        self.anova: Dict[str, ANOVAResult] = {}
        self.clusters: List[ClusterPartition] = []
        self.computed = False

    @property
    def record_count(self) -> int:
        return len(self.records)

    def _extract_variables(self) -> None:
        self.variables = extract_variables(self.records)

    def _compute_statistics(self) -> None:
        self.statistics = describe_variables(self.variables)
        self.outliers = outliers_by_variable(self.variables)
        self.categorical_statistics = describe_categorical_variables(self.variables)

    def _compute_correlations(self) -> None:
        self.correlations = compute_correlations(
            self.variables,
            min_pairs=self.config.get('correlation.min-pairs')
        )

    def _compute_anova(self) -> None:
        self.anova = compute_anova(
            self.variables,
            max_groups=self.config.get('anova.max-groups')
        )

    def _compute_clusters(self) -> None:
        """
        Build the clustering matrix and run the cluster sweep.
        """
        seed = self.config.get('clustering.random-seed')
        if seed is None:
            seed = time_based_seed()
        self.random_seed = seed

        matrix = build_cluster_matrix(self.variables, self.config.get('clustering.variables'))
        logger.info(f"Clustering matrix has {len(matrix)} complete rows "
                    f"over {len(matrix.colnames())} variables")

        self.clusters = sweep_named_matrix(
            matrix,
            k_min=self.config.get('clustering.k-min'),
            k_max=self.config.get('clustering.k-max'),
            min_points=self.config.get('clustering.min-points'),
            n_init=self.config.get('clustering.n-init'),
            max_iters=self.config.get('clustering.max-iters'),
            tolerance=self.config.get('clustering.tolerance'),
            random_state=seed
        )

    def recompute(self) -> 'SurveyAnalysis':
        """
        Run the full analysis pass.

        Returns:
            A new SurveyAnalysis with all results populated; this one is unchanged
        """
        result = copy(self)
        start_time = time.time()

        logger.info(f"Analyzing {result.record_count} responses")

        steps = [
            ('variable extraction', result._extract_variables),
            ('descriptive statistics', result._compute_statistics),
            ('correlations', result._compute_correlations),
            ('ANOVA', result._compute_anova),
            ('cluster sweep', result._compute_clusters),
        ]
        for name, step in steps:
            step_start = time.time()
            step()
            logger.info(f"[{time.time() - start_time:.2f}s] {name} completed "
                        f"in {time.time() - step_start:.2f}s")

        result.computed = True
        return result

    def display_names(self) -> Dict[str, str]:
        """Configured display names of the extracted variables."""
        names = self.config.get('display-names') or {}
        return {key: str(label) for key, label in names.items() if key in self.variables}

    def get_summary(self) -> Dict[str, Any]:
        """
        Get a summary of the analysis.

        Returns:
            Dictionary with counts of each result type
        """
        return {
            'record_count': self.record_count,
            'variable_count': len(self.variables),
            'numeric_count': sum(1 for v in self.variables.values() if v.is_numeric),
            'correlation_count': len(self.correlations),
            'anova_count': len(self.anova),
            'cluster_ks': [p.k for p in self.clusters],
        }

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert the results to plain serializable data.

        Returns:
            Dictionary of the analysis output
        """
        result = {
            'record_count': self.record_count,
            'random_seed': self.random_seed,
            'variables': {name: v.to_dict() for name, v in self.variables.items()},
            'statistics': {name: s.to_dict() for name, s in self.statistics.items()},
            'outliers': {name: o.to_dict() for name, o in self.outliers.items()},
            'categorical_statistics': {name: c.to_dict()
                                       for name, c in self.categorical_statistics.items()},
            'correlations': [c.to_dict() for c in self.correlations],
            'anova': {key: a.to_dict() for key, a in self.anova.items()},
            'clusters': [p.to_dict() for p in self.clusters],
            'labels': self.display_names(),
        }
        return to_builtin(result)


def analyze_survey(records: Iterable[RecordLike],
                   config: Optional[Config] = None) -> Dict[str, Any]:
    """
    Analyze a survey's responses in one call.

    Args:
        records: Response records (ResponseRecord models or dicts)
        config: Configuration (defaults to a fresh Config with default values)

    Returns:
        Serializable analysis output
    """
    return SurveyAnalysis(records, config).recompute().to_dict()
