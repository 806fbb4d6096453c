"""
Cluster sweep over a range of k.

Runs k-means once per candidate k and returns every partition, ordered by
k. No k is picked here; callers compare silhouette scores themselves.
"""

import logging
import time
from typing import Any, List, Sequence, Union

import numpy as np

from surveymath.math.clusters import (
    ClusterPartition, RandomState, get_rng, kmeans, with_row_names,
    MAX_ITERS, TOLERANCE
)
from surveymath.math.named_matrix import NamedMatrix

logger = logging.getLogger(__name__)

K_MIN = 2
K_MAX = 5
MIN_POINTS = 6


def k_range(n_points: int,
            k_min: int = K_MIN,
            k_max: int = K_MAX,
            min_points: int = MIN_POINTS) -> List[int]:
    """
    Candidate cluster counts for a dataset.

    Args:
        n_points: Number of points
        k_min: Smallest k
        k_max: Largest k
        min_points: Below this many points no k is tried

    Returns:
        k values from k_min to min(k_max, n_points // 2), inclusive
    """
    if n_points < min_points:
        return []
    upper = min(k_max, n_points // 2)
    return list(range(k_min, upper + 1))


def best_of(data: np.ndarray,
            k: int,
            n_init: int = 1,
            max_iters: int = MAX_ITERS,
            tolerance: float = TOLERANCE,
            random_state: RandomState = None) -> ClusterPartition:
    """
    Run k-means n_init times and keep the run with the lowest inertia.

    Args:
        data: Data matrix
        k: Number of clusters
        n_init: Number of independent runs
        max_iters: Maximum iterations per run
        tolerance: Convergence threshold on center movement
        random_state: Seed or Generator shared across the runs

    Returns:
        The lowest-inertia ClusterPartition
    """
    rng = get_rng(random_state)
    best = None
    for _ in range(max(1, n_init)):
        partition = kmeans(data, k, max_iters, tolerance, rng)
        if best is None or partition.inertia < best.inertia:
            best = partition
    return best


def cluster_sweep(data: Union[np.ndarray, Sequence[Sequence[float]]],
                  k_min: int = K_MIN,
                  k_max: int = K_MAX,
                  min_points: int = MIN_POINTS,
                  n_init: int = 1,
                  max_iters: int = MAX_ITERS,
                  tolerance: float = TOLERANCE,
                  random_state: RandomState = None) -> List[ClusterPartition]:
    """
    Cluster the data once for every candidate k.

    Each k starts from freshly drawn centers; nothing is reused between k
    values. All runs draw from one generator, so a seed makes the whole
    sweep reproducible.

    Args:
        data: Data matrix (points as rows)
        k_min: Smallest k
        k_max: Largest k
        min_points: Minimum number of points for any clustering
        n_init: Runs per k, lowest inertia kept
        max_iters: Maximum iterations per run
        tolerance: Convergence threshold on center movement
        random_state: Seed or Generator

    Returns:
        One ClusterPartition per k, ordered by k (empty for too few points)
    """
    data = np.asarray(data, dtype=float)
    if data.ndim == 1:
        data = data.reshape(-1, 1)

    ks = k_range(data.shape[0], k_min, k_max, min_points)
    if not ks:
        logger.debug(f"Skipping cluster sweep: {data.shape[0]} points")
        return []

    rng = get_rng(random_state)
    partitions = []
    for k in ks:
        start_time = time.time()
        partition = best_of(data, k, n_init, max_iters, tolerance, rng)
        logger.debug(f"k={k}: silhouette {partition.silhouette_score:.4f}, "
                     f"{partition.iterations} iterations, converged={partition.converged} "
                     f"({time.time() - start_time:.3f}s)")
        partitions.append(partition)

    return partitions


def sweep_named_matrix(nmat: NamedMatrix, **kwargs: Any) -> List[ClusterPartition]:
    """
    Run the cluster sweep over the rows of a NamedMatrix.

    Args:
        nmat: Matrix with record ids as rows
        **kwargs: Passed to cluster_sweep

    Returns:
        ClusterPartition list carrying the matrix row names
    """
    row_names = nmat.rownames()
    return [with_row_names(p, row_names) for p in cluster_sweep(nmat.values, **kwargs)]
