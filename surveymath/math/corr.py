"""
Correlation analysis for survey variables.

This module computes the Pearson correlation between every pair of numeric
variables, joining the two variables on record id so that values from the
same respondent are paired. Each coefficient gets an approximate two-tailed
p-value, a significance tier, and strength and direction labels.
"""

import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from surveymath.math.stats import two_tailed_p
from surveymath.math.variables import Variable, numeric_variables
from surveymath.utils.general import map_rest

logger = logging.getLogger(__name__)

MIN_PAIRS = 3

VERY_SIGNIFICANT = 'very significant'
SIGNIFICANT = 'significant'
MODERATELY_SIGNIFICANT = 'moderately significant'
NOT_SIGNIFICANT = 'not significant'

# Lower bounds of |r| for each strength label, strongest first
STRENGTH_THRESHOLDS = (
    (0.9, 'very strong'),
    (0.7, 'strong'),
    (0.5, 'moderate'),
    (0.3, 'weak'),
)
VERY_WEAK = 'very weak'

POSITIVE = 'positive'
NEGATIVE = 'negative'
NO_DIRECTION = 'none'
DIRECTION_THRESHOLD = 0.1


@dataclass(frozen=True)
class CorrelationResult:
    """Correlation between two numeric variables."""
    variable_a: str
    variable_b: str
    coefficient: float
    p_value: float
    significance: str
    n: int
    strength: str = VERY_WEAK
    direction: str = NO_DIRECTION

    def to_dict(self) -> Dict[str, Any]:
        return {
            'variable_a': self.variable_a,
            'variable_b': self.variable_b,
            'coefficient': self.coefficient,
            'p_value': self.p_value,
            'significance': self.significance,
            'n': self.n,
            'strength': self.strength,
            'direction': self.direction,
        }


def pearson_correlation(x: Union[Sequence[float], np.ndarray],
                        y: Union[Sequence[float], np.ndarray]) -> float:
    """
    Pearson product-moment correlation over deviations from the mean.

    Args:
        x: First sample
        y: Second sample, same length as x

    Returns:
        Coefficient in [-1, 1]; 0 if either sample is constant or empty
    """
    x = np.asarray(x, dtype=float)
    y = np.asarray(y, dtype=float)
    if len(x) != len(y):
        raise ValueError(f"samples differ in length: {len(x)} != {len(y)}")

    n = len(x)
    if n == 0 or np.all(x == x[0]) or np.all(y == y[0]):
        return 0.0

    dx = x - np.mean(x)
    dy = y - np.mean(y)
    numerator = np.sum(dx * dy)
    denominator = math.sqrt(np.sum(dx * dx) * np.sum(dy * dy))

    if denominator == 0 or not math.isfinite(denominator):
        return 0.0

    r = float(numerator / denominator)
    return min(1.0, max(-1.0, r))


def correlation_p_value(r: float, n: int) -> float:
    """
    Approximate two-tailed p-value of a correlation coefficient.

    The t-statistic t = r * sqrt((n - 2) / (1 - r^2)) is evaluated against
    the standard normal distribution instead of Student's t.

    Args:
        r: Correlation coefficient
        n: Number of pairs

    Returns:
        p-value in [0, 1]
    """
    if n <= 2:
        return 1.0
    if abs(r) >= 1.0:
        return 0.0
    t = r * math.sqrt((n - 2) / (1 - r * r))
    return two_tailed_p(t)


def significance_tier(p_value: float) -> str:
    """
    Map a p-value to its reporting tier.

    Args:
        p_value: p-value

    Returns:
        One of 'very significant', 'significant', 'moderately significant',
        'not significant'
    """
    if p_value < 0.001:
        return VERY_SIGNIFICANT
    if p_value < 0.01:
        return SIGNIFICANT
    if p_value < 0.05:
        return MODERATELY_SIGNIFICANT
    return NOT_SIGNIFICANT


def correlation_strength(r: float) -> str:
    """
    Label the magnitude of a correlation coefficient.

    Args:
        r: Correlation coefficient

    Returns:
        One of 'very strong', 'strong', 'moderate', 'weak', 'very weak'
    """
    magnitude = abs(r)
    for bound, label in STRENGTH_THRESHOLDS:
        if magnitude >= bound:
            return label
    return VERY_WEAK


def correlation_direction(r: float) -> str:
    """Label the sign of a coefficient; |r| <= 0.1 has no direction."""
    if r > DIRECTION_THRESHOLD:
        return POSITIVE
    if r < -DIRECTION_THRESHOLD:
        return NEGATIVE
    return NO_DIRECTION


def paired_values(var_a: Variable, var_b: Variable) -> Tuple[np.ndarray, np.ndarray]:
    """
    Pair the values of two variables by record id.

    Only records that answered both keys contribute a pair.

    Args:
        var_a: First numeric variable
        var_b: Second numeric variable

    Returns:
        Tuple of aligned value arrays
    """
    joined = pd.concat(
        [var_a.as_series().rename('a'), var_b.as_series().rename('b')],
        axis=1,
        join='inner'
    )
    return joined['a'].to_numpy(dtype=float), joined['b'].to_numpy(dtype=float)


def correlate(var_a: Variable, var_b: Variable,
              min_pairs: int = MIN_PAIRS) -> Optional[CorrelationResult]:
    """
    Correlate two numeric variables.

    Args:
        var_a: First numeric variable
        var_b: Second numeric variable
        min_pairs: Minimum number of joined pairs

    Returns:
        CorrelationResult, or None if fewer than min_pairs records answered both
    """
    x, y = paired_values(var_a, var_b)
    n = len(x)
    if n < max(min_pairs, MIN_PAIRS):
        return None

    r = pearson_correlation(x, y)
    p_value = correlation_p_value(r, n)

    return CorrelationResult(
        variable_a=var_a.name,
        variable_b=var_b.name,
        coefficient=r,
        p_value=p_value,
        significance=significance_tier(p_value),
        n=n,
        strength=correlation_strength(r),
        direction=correlation_direction(r)
    )


def compute_correlations(variables: Dict[str, Variable],
                         min_pairs: int = MIN_PAIRS) -> List[CorrelationResult]:
    """
    Correlate every unordered pair of numeric variables.

    Args:
        variables: Variables keyed by name; categorical ones are ignored
        min_pairs: Minimum number of joined pairs per correlation

    Returns:
        List of CorrelationResult in variable order
    """
    numeric = list(numeric_variables(variables).values())
    results = map_rest(lambda a, b: correlate(a, b, min_pairs), numeric)
    results = [r for r in results if r is not None]

    logger.debug(f"Computed {len(results)} correlations across {len(numeric)} numeric variables")
    return results
