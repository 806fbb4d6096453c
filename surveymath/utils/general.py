"""
General utility functions for the surveymath package.

Small helpers shared by the statistics, correlation, ANOVA and clustering
modules.
"""

import math
import numpy as np
from typing import Any, Callable, Dict, Iterable, List, Tuple, TypeVar

T = TypeVar('T')
U = TypeVar('U')


def map_rest(f: Callable[[T, T], U], coll: List[T]) -> List[U]:
    """
    Apply a function to each element and all remaining elements.

    For each element in coll, apply function f to that element and each
    element that comes after it. This is how every unordered pair of
    variables (or groups) is visited, in a stable order.

    Args:
        f: Function taking two arguments
        coll: Collection to process

    Returns:
        List of results
    """
    result = []
    n = len(coll)
    for i in range(n):
        for j in range(i + 1, n):
            result.append(f(coll[i], coll[j]))
    return result


def distinct(coll: Iterable[T]) -> List[T]:
    """
    Return a list with duplicates removed, preserving order.

    Args:
        coll: Collection to process

    Returns:
        List with duplicates removed
    """
    seen = set()
    result = []
    for item in coll:
        if item not in seen:
            seen.add(item)
            result.append(item)
    return result


def safe_divide(numerator: float, denominator: float, default: float = 0.0) -> float:
    """
    Divide two numbers, returning a default when the result is undefined.

    Args:
        numerator: Dividend
        denominator: Divisor
        default: Value returned for a zero divisor or a non-finite result

    Returns:
        The quotient, or default
    """
    if denominator == 0:
        return default
    result = numerator / denominator
    if not math.isfinite(result):
        return default
    return float(result)


def to_builtin(value: Any) -> Any:
    """
    Convert numpy scalars and arrays (possibly nested in dicts, lists and
    tuples) to plain Python objects for serialization.

    Args:
        value: Value to convert

    Returns:
        Value built only from dict, list, str, int, float, bool and None
    """
    if isinstance(value, dict):
        return {to_builtin(k): to_builtin(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_builtin(v) for v in value]
    if isinstance(value, np.ndarray):
        return to_builtin(value.tolist())
    if isinstance(value, np.bool_):
        return bool(value)
    if isinstance(value, np.integer):
        return int(value)
    if isinstance(value, np.floating):
        return float(value)
    return value


def deep_update(d: Dict[str, Any], u: Dict[str, Any]) -> Dict[str, Any]:
    """
    Recursively merge u into d. Nested dicts are merged, other values replaced.

    Args:
        d: Dictionary to update in place
        u: Updates to apply

    Returns:
        The updated dictionary
    """
    for k, v in u.items():
        if isinstance(v, dict) and k in d and isinstance(d[k], dict):
            d[k] = deep_update(d[k], v)
        else:
            d[k] = v
    return d
