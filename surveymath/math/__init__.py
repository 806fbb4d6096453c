"""
Core algorithms for survey analysis.

This module contains implementations of:
- Variable extraction from response records
- Descriptive statistics, outliers and categorical frequencies
- Correlation analysis
- One-way ANOVA
- K-means clustering and the cluster sweep
"""

from surveymath.math.variables import ResponseRecord, Variable, extract_variables
from surveymath.math.stats import (
    StatisticalSummary, describe, describe_variables, identify_outliers,
    describe_categorical
)
from surveymath.math.corr import CorrelationResult, compute_correlations
from surveymath.math.anova import ANOVAResult, compute_anova
from surveymath.math.clusters import ClusterPartition, kmeans, silhouette
from surveymath.math.sweep import cluster_sweep, sweep_named_matrix

__all__ = [
    'ResponseRecord',
    'Variable',
    'extract_variables',
    'StatisticalSummary',
    'describe',
    'describe_variables',
    'identify_outliers',
    'describe_categorical',
    'CorrelationResult',
    'compute_correlations',
    'ANOVAResult',
    'compute_anova',
    'ClusterPartition',
    'kmeans',
    'silhouette',
    'cluster_sweep',
    'sweep_named_matrix',
]
