"""
Variable extraction for survey responses.

This module turns raw response records into named variables: one per
answer key, classified as numeric or categorical, plus the synthetic
``sentiment_score`` variable. Every value keeps the identifier of the
record it came from so downstream analyses can join variables by record
rather than by array position.
"""

import logging
import math
import re
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd
from pydantic import BaseModel, ConfigDict, Field

from surveymath.utils.general import distinct

logger = logging.getLogger(__name__)

NUMERIC = 'numeric'
CATEGORICAL = 'categorical'
SENTIMENT_VARIABLE = 'sentiment_score'

# Plain decimal notation, optionally signed, optionally with an exponent
_DECIMAL_RE = re.compile(r'^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$')


class ResponseRecord(BaseModel):
    """
    One survey response as handed over by the data-fetch layer.

    Accepts both snake_case and camelCase field names.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra='ignore')

    id: Optional[Union[int, str]] = None
    responses: Dict[str, Any] = Field(default_factory=dict)
    sentiment_score: Optional[float] = Field(default=None, alias='sentimentScore')
    created_at: Optional[datetime] = Field(default=None, alias='createdAt')


RecordLike = Union[ResponseRecord, Dict[str, Any]]


def parse_records(records: Iterable[RecordLike]) -> List[ResponseRecord]:
    """
    Validate raw records into ResponseRecord models.

    Args:
        records: ResponseRecord instances or plain dicts

    Returns:
        List of ResponseRecord

    Raises:
        pydantic.ValidationError: If a record does not match the input contract
    """
    parsed = []
    for record in records:
        if isinstance(record, ResponseRecord):
            parsed.append(record)
        else:
            parsed.append(ResponseRecord.model_validate(record))
    return parsed


def record_ids(records: Sequence[ResponseRecord]) -> List[Any]:
    """
    Get the stable identifier of each record.

    Record ids are used when every record has one and they are unique;
    otherwise every record is identified by its position.

    Args:
        records: Parsed records

    Returns:
        One identifier per record, in record order
    """
    ids = [record.id for record in records]
    if ids and all(rid is not None for rid in ids):
        if len(distinct(ids)) == len(ids):
            return ids
        logger.warning("Duplicate record ids found, identifying records by position instead")
    return list(range(len(records)))


def coerce_number(value: Any) -> Optional[float]:
    """
    Coerce an answer value to a finite float.

    Ints, floats and strings in plain decimal notation coerce. Booleans,
    lists, other text and non-finite numbers do not.

    Args:
        value: Raw answer value

    Returns:
        The number, or None if the value does not coerce
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float, np.integer, np.floating)):
        try:
            number = float(value)
        except OverflowError:
            return None
        return number if math.isfinite(number) else None
    if isinstance(value, str):
        text = value.strip()
        if _DECIMAL_RE.match(text):
            number = float(text)
            return number if math.isfinite(number) else None
    return None


def is_missing(value: Any) -> bool:
    """
    Check whether an answer counts as not given.

    None, blank strings, empty lists and NaN/infinite numbers are missing.
    """
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple)):
        return len(value) == 0
    if isinstance(value, (float, np.floating)):
        return not math.isfinite(float(value))
    return False


def category_label(value: Any) -> str:
    """
    Get the category label of a categorical answer.

    Multi-select answers become one label with their items joined by ", ".
    """
    if isinstance(value, (list, tuple)):
        return ", ".join(str(item) for item in value)
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


@dataclass(frozen=True)
class Variable:
    """
    A named, single-kind collection of answer values.

    Numeric variables hold finite floats only; categorical variables hold
    string labels and their counts in first-seen order.
    """
    name: str
    kind: str
    values: Tuple[Any, ...]
    record_ids: Tuple[Any, ...]
    counts: Dict[str, int] = field(default_factory=dict)

    @property
    def n(self) -> int:
        return len(self.values)

    @property
    def is_numeric(self) -> bool:
        return self.kind == NUMERIC

    def as_array(self) -> np.ndarray:
        """Values as a float array (numeric variables only)."""
        if not self.is_numeric:
            raise TypeError(f"Variable '{self.name}' is categorical")
        return np.asarray(self.values, dtype=float)

    def as_series(self) -> pd.Series:
        """Values as a pandas Series indexed by record id."""
        index = pd.Index(list(self.record_ids), dtype=object)
        dtype = float if self.is_numeric else object
        return pd.Series(list(self.values), index=index, name=self.name, dtype=dtype)

    def to_dict(self) -> Dict[str, Any]:
        result = {'kind': self.kind, 'n': self.n}
        if not self.is_numeric:
            result['counts'] = dict(self.counts)
        return result


def _build_variable(name: str, answers: List[Tuple[Any, Any]]) -> Optional[Variable]:
    """
    Classify and coerce one key's answers.

    Args:
        name: Answer key
        answers: (record id, raw value) pairs in record order

    Returns:
        The Variable, or None if every answer is missing
    """
    given = [(rid, value) for rid, value in answers if not is_missing(value)]
    if not given:
        return None

    coerced = [(rid, coerce_number(value)) for rid, value in given]

    if all(number is not None for _, number in coerced):
        return Variable(
            name=name,
            kind=NUMERIC,
            values=tuple(number for _, number in coerced),
            record_ids=tuple(rid for rid, _ in coerced)
        )

    labels = [(rid, category_label(value)) for rid, value in given]
    counts: Dict[str, int] = OrderedDict()
    for _, label in labels:
        counts[label] = counts.get(label, 0) + 1

    return Variable(
        name=name,
        kind=CATEGORICAL,
        values=tuple(label for _, label in labels),
        record_ids=tuple(rid for rid, _ in labels),
        counts=dict(counts)
    )


def extract_variables(records: Iterable[RecordLike]) -> Dict[str, Variable]:
    """
    Extract numeric and categorical variables from response records.

    Keys are visited in first-seen order across all records. A key whose
    given answers all coerce to numbers is numeric; any non-numeric answer
    makes it categorical. Missing answers are dropped, never zero-filled.
    ``sentiment_score`` is appended as a numeric variable when any record
    carries a finite score.

    Args:
        records: Response records (models or dicts)

    Returns:
        Ordered dict of variable name to Variable
    """
    records = parse_records(records)
    ids = record_ids(records)

    answers: Dict[str, List[Tuple[Any, Any]]] = OrderedDict()
    for rid, record in zip(ids, records):
        for key, value in record.responses.items():
            answers.setdefault(key, []).append((rid, value))

    sentiment = [(rid, record.sentiment_score) for rid, record in zip(ids, records)]
    sentiment = [(rid, score) for rid, score in sentiment if not is_missing(score)]

    if sentiment and SENTIMENT_VARIABLE in answers:
        logger.warning(f"Answer key '{SENTIMENT_VARIABLE}' is shadowed by the record sentiment score")
        del answers[SENTIMENT_VARIABLE]

    variables: Dict[str, Variable] = OrderedDict()
    for key, key_answers in answers.items():
        variable = _build_variable(key, key_answers)
        if variable is not None:
            variables[key] = variable

    if sentiment:
        variables[SENTIMENT_VARIABLE] = Variable(
            name=SENTIMENT_VARIABLE,
            kind=NUMERIC,
            values=tuple(float(score) for _, score in sentiment),
            record_ids=tuple(rid for rid, _ in sentiment)
        )

    n_numeric = sum(1 for v in variables.values() if v.is_numeric)
    logger.debug(f"Extracted {len(variables)} variables ({n_numeric} numeric) from {len(records)} records")

    return dict(variables)


def numeric_variables(variables: Dict[str, Variable]) -> Dict[str, Variable]:
    """Select the numeric variables, keeping their order."""
    return {name: v for name, v in variables.items() if v.is_numeric}


def categorical_variables(variables: Dict[str, Variable]) -> Dict[str, Variable]:
    """Select the categorical variables, keeping their order."""
    return {name: v for name, v in variables.items() if not v.is_numeric}
