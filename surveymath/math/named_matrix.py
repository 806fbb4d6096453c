"""
Named Matrix implementation for the survey math module.

This module provides a matrix with named rows and columns, used for the
respondent-by-variable clustering matrix (rows are record ids, columns are
numeric variable names).
"""

import logging
import numpy as np
import pandas as pd
from typing import List, Dict, Union, Optional, Any

from surveymath.math.variables import Variable

logger = logging.getLogger(__name__)


class NamedMatrix:
    """
    A matrix with named rows and columns.

    Uses a pandas DataFrame as the underlying storage. Instances are not
    modified after construction; complete_rows returns a new NamedMatrix.
    """

    def __init__(self,
                 matrix: Optional[Union[np.ndarray, pd.DataFrame, List[List[float]]]] = None,
                 rownames: Optional[List[Any]] = None,
                 colnames: Optional[List[Any]] = None):
        """
        Initialize a NamedMatrix with optional initial data.

        Args:
            matrix: Initial matrix data (numpy array, nested lists or DataFrame)
            rownames: List of row names
            colnames: List of column names
        """
        if matrix is None:
            self._matrix = pd.DataFrame(
                index=pd.Index(list(rownames or []), dtype=object),
                columns=list(colnames or []),
                dtype=float
            )
        elif isinstance(matrix, pd.DataFrame):
            self._matrix = matrix.copy()
            if rownames is not None:
                self._matrix.index = pd.Index(list(rownames), dtype=object)
            if colnames is not None:
                self._matrix.columns = list(colnames)
        else:
            values = np.asarray(matrix, dtype=float)
            if values.ndim == 1:
                values = values.reshape(-1, 1) if values.size else values.reshape(0, len(colnames or []))
            rows = list(rownames) if rownames is not None else list(range(values.shape[0]))
            cols = list(colnames) if colnames is not None else list(range(values.shape[1]))
            self._matrix = pd.DataFrame(
                values,
                index=pd.Index(rows, dtype=object),
                columns=cols
            )

    @property
    def values(self) -> np.ndarray:
        """Get the matrix as a float numpy array."""
        return self._matrix.to_numpy(dtype=float)

    def rownames(self) -> List[Any]:
        """Get the list of row names."""
        return list(self._matrix.index)

    def colnames(self) -> List[Any]:
        """Get the list of column names."""
        return list(self._matrix.columns)

    def complete_rows(self) -> 'NamedMatrix':
        """
        Drop every row that has a missing value in any column.

        Returns:
            A new NamedMatrix with only complete rows
        """
        return NamedMatrix(self._matrix.dropna(axis=0, how='any'))

    def __len__(self) -> int:
        return self._matrix.shape[0]

    def __repr__(self) -> str:
        """
        String representation of the NamedMatrix.
        """
        return f"NamedMatrix(rows={len(self.rownames())}, cols={len(self.colnames())})"

    def __str__(self) -> str:
        """
        Human-readable string representation.
        """
        return (f"NamedMatrix with {len(self.rownames())} rows and "
                f"{len(self.colnames())} columns\n{self._matrix}")


def build_cluster_matrix(variables: Dict[str, Variable],
                         names: Optional[List[str]] = None) -> NamedMatrix:
    """
    Build the respondent-by-variable matrix used for clustering.

    The selected numeric variables are outer-joined on record id, then
    every record missing any selected variable is dropped.

    Args:
        variables: Variables keyed by name
        names: Numeric variables to include (defaults to all numeric variables)

    Returns:
        NamedMatrix with record ids as rows and variable names as columns
    """
    if names is None:
        names = [name for name, v in variables.items() if v.is_numeric]

    selected = []
    for name in names:
        variable = variables.get(name)
        if variable is None:
            logger.warning(f"Clustering variable '{name}' not found, skipping")
            continue
        if not variable.is_numeric:
            logger.warning(f"Clustering variable '{name}' is categorical, skipping")
            continue
        selected.append(variable)

    if not selected:
        return NamedMatrix(rownames=[], colnames=[])

    frame = pd.concat([v.as_series() for v in selected], axis=1, join='outer', sort=False)
    full = NamedMatrix(frame)
    complete = full.complete_rows()

    dropped = len(full) - len(complete)
    if dropped:
        logger.debug(f"Dropped {dropped} incomplete rows from the clustering matrix")

    return complete
