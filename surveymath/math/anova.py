"""
One-way ANOVA for survey variables.

Compares the mean of a numeric variable across the groups formed by a
categorical variable. The p-value is a simplified transform of the
F-statistic rather than the F-distribution tail, and the post-hoc table is
a plain set of pairwise comparisons without multiple-comparison correction.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from surveymath.math.stats import two_tailed_p
from surveymath.math.variables import Variable, numeric_variables, categorical_variables
from surveymath.utils.general import map_rest, safe_divide

logger = logging.getLogger(__name__)

ALPHA = 0.05


@dataclass(frozen=True)
class PostHocComparison:
    """Pairwise comparison of two group means."""
    group_a: str
    group_b: str
    mean_difference: float
    t_statistic: float
    p_value: float
    significant: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            'group_a': self.group_a,
            'group_b': self.group_b,
            'mean_difference': self.mean_difference,
            't_statistic': self.t_statistic,
            'p_value': self.p_value,
            'significant': self.significant,
        }


@dataclass(frozen=True)
class ANOVAResult:
    """One-way ANOVA of a numeric variable grouped by a categorical one."""
    numeric_variable: str
    categorical_variable: str
    groups: Tuple[str, ...]
    group_means: Dict[str, float]
    group_sizes: Dict[str, int]
    grand_mean: float
    ss_between: float
    ss_within: float
    df_between: int
    df_within: int
    ms_between: float
    ms_within: float
    f_statistic: float
    p_value: float
    significant: bool
    post_hoc: Tuple[PostHocComparison, ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'numeric_variable': self.numeric_variable,
            'categorical_variable': self.categorical_variable,
            'groups': list(self.groups),
            'group_means': dict(self.group_means),
            'group_sizes': dict(self.group_sizes),
            'grand_mean': self.grand_mean,
            'ss_between': self.ss_between,
            'ss_within': self.ss_within,
            'df_between': self.df_between,
            'df_within': self.df_within,
            'ms_between': self.ms_between,
            'ms_within': self.ms_within,
            'f_statistic': self.f_statistic,
            'p_value': self.p_value,
            'significant': self.significant,
            'post_hoc': [c.to_dict() for c in self.post_hoc],
        }


def anova_key(numeric_name: str, categorical_name: str) -> str:
    """Output key of an ANOVA result."""
    return f"{numeric_name}_by_{categorical_name}"


def f_p_value(f_statistic: float) -> float:
    """
    Approximate p-value of an F-statistic.

    Uses exp(-F / 2), which falls monotonically from 1 at F = 0. This is
    not the F-distribution tail and ignores the degrees of freedom.

    Args:
        f_statistic: Non-negative F-statistic

    Returns:
        p-value in (0, 1]
    """
    return math.exp(-max(0.0, f_statistic) / 2.0)


def _sum_of_squares(values: np.ndarray, mean: float) -> float:
    # Constant groups contribute exactly zero, whatever rounding the mean picked up
    if np.all(values == values[0]):
        return 0.0
    return float(np.sum((values - mean) ** 2))


def _sample_variance(values: np.ndarray) -> float:
    if len(values) < 2 or np.all(values == values[0]):
        return 0.0
    return float(np.var(values, ddof=1))


def compare_groups(name_a: str, values_a: np.ndarray,
                   name_b: str, values_b: np.ndarray) -> PostHocComparison:
    """
    Compare two groups with an unpooled two-sample t-statistic.

    The t-statistic is evaluated against the normal distribution. Singleton
    groups contribute zero variance; zero standard error gives t = 0.

    Args:
        name_a: First group label
        values_a: First group values
        name_b: Second group label
        values_b: Second group values

    Returns:
        PostHocComparison
    """
    mean_a = float(np.mean(values_a))
    mean_b = float(np.mean(values_b))
    difference = abs(mean_a - mean_b)

    se = math.sqrt(_sample_variance(values_a) / len(values_a) +
                   _sample_variance(values_b) / len(values_b))
    t_stat = safe_divide(difference, se)
    p_value = two_tailed_p(t_stat) if t_stat > 0 else 1.0

    return PostHocComparison(
        group_a=name_a,
        group_b=name_b,
        mean_difference=difference,
        t_statistic=t_stat,
        p_value=p_value,
        significant=p_value < ALPHA
    )


def one_way_anova(group_data: Dict[str, Union[Sequence[float], np.ndarray]],
                  numeric_name: str = '',
                  categorical_name: str = '') -> Optional[ANOVAResult]:
    """
    One-way ANOVA over labelled groups.

    Args:
        group_data: Group label to values, in the order groups should be reported
        numeric_name: Name of the numeric variable (for the result)
        categorical_name: Name of the grouping variable (for the result)

    Returns:
        ANOVAResult, or None if fewer than two groups have values
    """
    groups = {label: np.asarray(values, dtype=float)
              for label, values in group_data.items() if len(values) > 0}
    if len(groups) < 2:
        return None

    labels = list(groups.keys())
    all_values = np.concatenate(list(groups.values()))
    n_total = len(all_values)
    grand_mean = float(np.mean(all_values))

    group_means = {label: float(np.mean(values)) for label, values in groups.items()}
    group_sizes = {label: len(values) for label, values in groups.items()}

    ss_between = float(sum(group_sizes[label] * (group_means[label] - grand_mean) ** 2
                           for label in labels))
    ss_within = float(sum(_sum_of_squares(groups[label], group_means[label])
                          for label in labels))

    df_between = len(labels) - 1
    df_within = n_total - len(labels)

    ms_between = safe_divide(ss_between, df_between)
    ms_within = safe_divide(ss_within, df_within)

    # Undefined F (no within-group spread or no within-group df) is reported as 0
    f_statistic = safe_divide(ms_between, ms_within)
    p_value = f_p_value(f_statistic)

    post_hoc = map_rest(lambda a, b: compare_groups(a, groups[a], b, groups[b]), labels)

    return ANOVAResult(
        numeric_variable=numeric_name,
        categorical_variable=categorical_name,
        groups=tuple(labels),
        group_means=group_means,
        group_sizes=group_sizes,
        grand_mean=grand_mean,
        ss_between=ss_between,
        ss_within=ss_within,
        df_between=df_between,
        df_within=df_within,
        ms_between=ms_between,
        ms_within=ms_within,
        f_statistic=f_statistic,
        p_value=p_value,
        significant=p_value < ALPHA,
        post_hoc=tuple(post_hoc)
    )


def group_values(numeric: Variable, categorical: Variable) -> Dict[str, np.ndarray]:
    """
    Split a numeric variable's values by the category of the same record.

    Args:
        numeric: Numeric variable
        categorical: Categorical variable

    Returns:
        Category label to values, in first-seen category order
    """
    joined = pd.concat(
        [numeric.as_series().rename('value'), categorical.as_series().rename('group')],
        axis=1,
        join='inner'
    )
    return {
        label: frame['value'].to_numpy(dtype=float)
        for label, frame in joined.groupby('group', sort=False)
    }


def anova(numeric: Variable, categorical: Variable) -> Optional[ANOVAResult]:
    """
    ANOVA of one numeric variable grouped by one categorical variable.

    Args:
        numeric: Numeric variable
        categorical: Categorical variable

    Returns:
        ANOVAResult, or None with fewer than two non-empty groups
    """
    return one_way_anova(group_values(numeric, categorical), numeric.name, categorical.name)


def compute_anova(variables: Dict[str, Variable],
                  max_groups: Optional[int] = 20) -> Dict[str, ANOVAResult]:
    """
    Run ANOVA for every numeric/categorical variable pair.

    Args:
        variables: Variables keyed by name
        max_groups: Skip categorical variables with more distinct labels
            than this (None for no limit)

    Returns:
        ANOVAResult keyed by "<numeric>_by_<categorical>"
    """
    numeric = numeric_variables(variables)
    categorical = categorical_variables(variables)

    results = {}
    for cat_name, cat_var in categorical.items():
        if len(cat_var.counts) < 2:
            continue
        if max_groups is not None and len(cat_var.counts) > max_groups:
            logger.debug(f"Skipping ANOVA grouping by '{cat_name}': {len(cat_var.counts)} groups")
            continue
        for num_name, num_var in numeric.items():
            result = anova(num_var, cat_var)
            if result is not None:
                results[anova_key(num_name, cat_name)] = result

    logger.debug(f"Computed {len(results)} ANOVA results")
    return results
