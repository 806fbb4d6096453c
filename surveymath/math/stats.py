"""
Statistical functions for the survey math module.

This module provides the descriptive summary of a numeric variable, IQR
outlier detection, the frequency summary of a categorical variable, and the
approximate distribution functions shared by the correlation and ANOVA
analyses. P-values derived here use a normal approximation (an
Abramowitz-Stegun error function) rather than exact t or F distributions;
they are meant for flagging results in reports, not for formal inference.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Optional, Sequence, Union

import numpy as np

from surveymath.math.variables import Variable
from surveymath.utils.general import safe_divide

logger = logging.getLogger(__name__)

Z_95 = 1.96

PERCENTILES = (25, 50, 75, 90, 95)

TUKEY_FENCE = 1.5

# Abramowitz & Stegun 7.1.26, maximum absolute error 1.5e-7
_AS_P = 0.3275911
_AS_A = (0.254829592, -0.284496736, 1.421413741, -1.453152027, 1.061405429)


def erf(x: float) -> float:
    """
    Approximate the error function.

    Uses the Abramowitz-Stegun 7.1.26 rational approximation, accurate to
    about 1.5e-7.

    Args:
        x: Input value

    Returns:
        erf(x)
    """
    sign = 1.0 if x >= 0 else -1.0
    x = abs(x)
    t = 1.0 / (1.0 + _AS_P * x)
    a1, a2, a3, a4, a5 = _AS_A
    poly = ((((a5 * t + a4) * t + a3) * t + a2) * t + a1) * t
    return sign * (1.0 - poly * math.exp(-x * x))


def normal_cdf(x: float) -> float:
    """
    Standard normal cumulative distribution function.

    Args:
        x: Z-value

    Returns:
        P(Z <= x)
    """
    if math.isinf(x):
        return 1.0 if x > 0 else 0.0
    return 0.5 * (1.0 + erf(x / math.sqrt(2.0)))


def two_tailed_p(z: float) -> float:
    """
    Two-tailed p-value of a statistic under the normal approximation.

    Args:
        z: Test statistic

    Returns:
        p-value in [0, 1]
    """
    p = 2.0 * (1.0 - normal_cdf(abs(z)))
    return min(1.0, max(0.0, p))


def percentile(sorted_values: Union[Sequence[float], np.ndarray], p: float) -> float:
    """
    Percentile by linear interpolation between order statistics.

    Args:
        sorted_values: Values sorted ascending (at least one)
        p: Percentile in [0, 100]

    Returns:
        The interpolated percentile
    """
    n = len(sorted_values)
    if n == 0:
        raise ValueError("percentile of an empty sequence")
    if not 0 <= p <= 100:
        raise ValueError(f"percentile must be between 0 and 100, got {p}")

    index = (p / 100.0) * (n - 1)
    lower = int(math.floor(index))
    upper = int(math.ceil(index))
    weight = index - lower

    return float(sorted_values[lower] * (1 - weight) + sorted_values[upper] * weight)


def mode(values: Iterable[float]) -> float:
    """
    Most frequent value.

    Ties go to the value that reached the highest count first while
    scanning in insertion order.

    Args:
        values: Values in insertion order (at least one)

    Returns:
        The mode
    """
    counts: Dict[float, int] = {}
    best = None
    best_count = 0
    for value in values:
        counts[value] = counts.get(value, 0) + 1
        if counts[value] > best_count:
            best_count = counts[value]
            best = value
    if best is None:
        raise ValueError("mode of an empty sequence")
    return float(best)


@dataclass(frozen=True)
class StatisticalSummary:
    """Descriptive statistics of one numeric variable."""
    n: int
    mean: float
    median: float
    mode: float
    variance: float
    standard_deviation: float
    min: float
    max: float
    range: float
    interquartile_range: float
    confidence_interval: tuple
    percentiles: Dict[str, float] = field(default_factory=dict)
    skewness: float = 0.0
    kurtosis: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'n': self.n,
            'mean': self.mean,
            'median': self.median,
            'mode': self.mode,
            'variance': self.variance,
            'standard_deviation': self.standard_deviation,
            'min': self.min,
            'max': self.max,
            'range': self.range,
            'interquartile_range': self.interquartile_range,
            'confidence_interval': list(self.confidence_interval),
            'percentiles': dict(self.percentiles),
            'skewness': self.skewness,
            'kurtosis': self.kurtosis,
        }


def describe(values: Union[Sequence[float], np.ndarray]) -> Optional[StatisticalSummary]:
    """
    Compute the descriptive summary of a numeric sample.

    Variance is the sample variance (n - 1 divisor) and is 0 for a single
    value. The 95% confidence interval uses the normal approximation.
    Skewness and excess kurtosis are 0 when the standard deviation is 0.

    Args:
        values: Finite numbers in insertion order

    Returns:
        StatisticalSummary, or None for an empty sample
    """
    data = np.asarray(values, dtype=float)
    n = len(data)
    if n == 0:
        return None

    sorted_data = np.sort(data)
    mean = float(np.mean(data))

    if n % 2 == 0:
        median = float((sorted_data[n // 2 - 1] + sorted_data[n // 2]) / 2)
    else:
        median = float(sorted_data[n // 2])

    # A constant sample has zero spread even if the mean picks up rounding error
    if n > 1 and sorted_data[0] != sorted_data[-1]:
        variance = float(np.sum((data - mean) ** 2) / (n - 1))
    else:
        variance = 0.0
    std = math.sqrt(variance)

    percentiles = {f"p{p}": percentile(sorted_data, p) for p in PERCENTILES}

    margin = Z_95 * std / math.sqrt(n)

    if std > 0:
        z = (data - mean) / std
        skewness = float(np.mean(z ** 3))
        kurtosis = float(np.mean(z ** 4) - 3.0)
    else:
        skewness = 0.0
        kurtosis = 0.0

    return StatisticalSummary(
        n=n,
        mean=mean,
        median=median,
        mode=mode(data.tolist()),
        variance=variance,
        standard_deviation=std,
        min=float(sorted_data[0]),
        max=float(sorted_data[-1]),
        range=float(sorted_data[-1] - sorted_data[0]),
        interquartile_range=percentiles['p75'] - percentiles['p25'],
        confidence_interval=(mean - margin, mean + margin),
        percentiles=percentiles,
        skewness=skewness,
        kurtosis=kurtosis
    )


def describe_variables(variables: Dict[str, Variable]) -> Dict[str, StatisticalSummary]:
    """
    Summarize every numeric variable.

    Args:
        variables: Variables keyed by name

    Returns:
        StatisticalSummary keyed by variable name (numeric, non-empty only)
    """
    summaries = {}
    for name, variable in variables.items():
        if not variable.is_numeric:
            continue
        summary = describe(variable.values)
        if summary is not None:
            summaries[name] = summary
    return summaries


@dataclass(frozen=True)
class OutlierSummary:
    """Values outside the Tukey fences of a numeric sample."""
    q1: float
    q3: float
    iqr: float
    lower_bound: float
    upper_bound: float
    outliers: tuple

    def to_dict(self) -> Dict[str, Any]:
        return {
            'q1': self.q1,
            'q3': self.q3,
            'iqr': self.iqr,
            'lower_bound': self.lower_bound,
            'upper_bound': self.upper_bound,
            'outliers': list(self.outliers),
        }


def identify_outliers(values: Union[Sequence[float], np.ndarray]) -> Optional[OutlierSummary]:
    """
    Find outliers with the IQR method.

    The fences are Q1 - 1.5 * IQR and Q3 + 1.5 * IQR, with quartiles
    interpolated as in percentile(). Values strictly outside a fence are
    outliers, reported in insertion order.

    Args:
        values: Finite numbers in insertion order

    Returns:
        OutlierSummary, or None for an empty sample
    """
    data = np.asarray(values, dtype=float)
    if len(data) == 0:
        return None

    sorted_data = np.sort(data)
    q1 = percentile(sorted_data, 25)
    q3 = percentile(sorted_data, 75)
    iqr = q3 - q1
    lower = q1 - TUKEY_FENCE * iqr
    upper = q3 + TUKEY_FENCE * iqr

    return OutlierSummary(
        q1=q1,
        q3=q3,
        iqr=iqr,
        lower_bound=lower,
        upper_bound=upper,
        outliers=tuple(float(v) for v in data if v < lower or v > upper)
    )


def outliers_by_variable(variables: Dict[str, Variable]) -> Dict[str, OutlierSummary]:
    """Outlier summary of every non-empty numeric variable."""
    summaries = {}
    for name, variable in variables.items():
        if variable.is_numeric and variable.n > 0:
            summaries[name] = identify_outliers(variable.values)
    return summaries


@dataclass(frozen=True)
class CategoricalSummary:
    """Frequency summary of one categorical variable."""
    n: int
    frequencies: Dict[str, int]
    percentages: Dict[str, float]
    most_frequent: str
    least_frequent: str
    unique_count: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            'n': self.n,
            'frequencies': dict(self.frequencies),
            'percentages': dict(self.percentages),
            'most_frequent': self.most_frequent,
            'least_frequent': self.least_frequent,
            'unique_count': self.unique_count,
        }


def describe_categorical(counts: Dict[str, int]) -> Optional[CategoricalSummary]:
    """
    Summarize category counts.

    Ties for the most frequent label go to the first-seen label; ties for
    the least frequent label go to the last-seen one.

    Args:
        counts: Label to count, in first-seen order

    Returns:
        CategoricalSummary, or None when there are no answers
    """
    total = sum(counts.values())
    if total == 0:
        return None

    labels = list(counts)
    most = max(labels, key=lambda label: counts[label])
    least = min(reversed(labels), key=lambda label: counts[label])

    return CategoricalSummary(
        n=total,
        frequencies=dict(counts),
        percentages={label: count / total * 100.0 for label, count in counts.items()},
        most_frequent=most,
        least_frequent=least,
        unique_count=len(labels)
    )


def describe_categorical_variables(variables: Dict[str, Variable]) -> Dict[str, CategoricalSummary]:
    """Frequency summary of every categorical variable."""
    summaries = {}
    for name, variable in variables.items():
        if variable.is_numeric:
            continue
        summary = describe_categorical(variable.counts)
        if summary is not None:
            summaries[name] = summary
    return summaries


@dataclass(frozen=True)
class HypothesisTestResult:
    """One-sample test of a mean against a hypothesized value."""
    n: int
    sample_mean: float
    hypothesized_mean: float
    t_statistic: float
    p_value: float
    significant: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            'n': self.n,
            'sample_mean': self.sample_mean,
            'hypothesized_mean': self.hypothesized_mean,
            't_statistic': self.t_statistic,
            'p_value': self.p_value,
            'significant': self.significant,
        }


def one_sample_test(values: Union[Sequence[float], np.ndarray],
                    hypothesized_mean: Optional[float] = None) -> Optional[HypothesisTestResult]:
    """
    Test whether a sample mean differs from a hypothesized mean.

    The t-statistic is compared against the normal distribution, so this
    is a large-sample approximation. Significance means |t| > 1.96.

    Args:
        values: Sample values
        hypothesized_mean: Mean under the null hypothesis (defaults to the sample mean)

    Returns:
        HypothesisTestResult, or None for an empty sample
    """
    data = np.asarray(values, dtype=float)
    n = len(data)
    if n == 0:
        return None

    sample_mean = float(np.mean(data))
    mu0 = sample_mean if hypothesized_mean is None else float(hypothesized_mean)

    if n < 2 or np.all(data == data[0]):
        t_stat = 0.0
    else:
        std = float(np.std(data, ddof=1))
        t_stat = safe_divide(sample_mean - mu0, std / math.sqrt(n))

    p_value = two_tailed_p(t_stat) if t_stat != 0 else 1.0

    return HypothesisTestResult(
        n=n,
        sample_mean=sample_mean,
        hypothesized_mean=mu0,
        t_statistic=t_stat,
        p_value=p_value,
        significant=abs(t_stat) > Z_95
    )
