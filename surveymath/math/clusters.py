"""
K-means clustering implementation for survey segmentation.

This module provides Lloyd's algorithm with random centroid initialization
drawn from the data, a centroid-movement convergence test, and the
silhouette coefficient for scoring a partition. The random generator is an
explicit parameter so callers can make a run reproducible.
"""

import logging
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np
from scipy.spatial.distance import pdist, squareform

from surveymath.math.named_matrix import NamedMatrix

logger = logging.getLogger(__name__)

MAX_ITERS = 100
TOLERANCE = 0.001

RandomState = Optional[Union[int, np.random.Generator]]


class Cluster:
    """
    Represents a cluster in K-means clustering.
    """

    def __init__(self,
                 center: np.ndarray,
                 members: Optional[List[int]] = None,
                 id: Optional[int] = None):
        """
        Initialize a cluster with a center and optional members.

        Args:
            center: The center of the cluster
            members: Indices of members belonging to the cluster
            id: Unique identifier for the cluster
        """
        self.center = np.array(center, dtype=float)
        self.members = [] if members is None else list(members)
        self.id = id

    def add_member(self, idx: int) -> None:
        """
        Add a member to the cluster.

        Args:
            idx: Index of the member to add
        """
        self.members.append(idx)

    def clear_members(self) -> None:
        """Clear all members from the cluster."""
        self.members = []

    def update_center(self, data: np.ndarray) -> None:
        """
        Move the center to the mean of its members.

        An empty cluster keeps its current center.

        Args:
            data: Data matrix containing all points
        """
        if not self.members:
            return

        self.center = np.mean(data[self.members], axis=0)

    def __repr__(self) -> str:
        """String representation of the cluster."""
        return f"Cluster(id={self.id}, members={len(self.members)})"


@dataclass(frozen=True)
class ClusterPartition:
    """Result of one k-means run."""
    k: int
    centroids: Tuple[Tuple[float, ...], ...]
    labels: Tuple[int, ...]
    members: Tuple[Tuple[int, ...], ...]
    iterations: int
    converged: bool
    silhouette_score: float
    inertia: float
    row_names: Optional[Tuple[Any, ...]] = None

    @property
    def sizes(self) -> List[int]:
        return [len(m) for m in self.members]

    def to_dict(self) -> Dict[str, Any]:
        result = {
            'k': self.k,
            'centroids': [list(c) for c in self.centroids],
            'labels': list(self.labels),
            'members': [list(m) for m in self.members],
            'sizes': self.sizes,
            'iterations': self.iterations,
            'converged': self.converged,
            'silhouette_score': self.silhouette_score,
            'inertia': self.inertia,
        }
        if self.row_names is not None:
            result['row_names'] = list(self.row_names)
            result['member_ids'] = [[self.row_names[i] for i in m] for m in self.members]
        return result


def get_rng(random_state: RandomState = None) -> np.random.Generator:
    """
    Get a numpy Generator from a seed, an existing generator, or None.

    Args:
        random_state: None (fresh entropy), an int seed, or a Generator

    Returns:
        numpy Generator
    """
    if isinstance(random_state, np.random.Generator):
        return random_state
    return np.random.default_rng(random_state)


def init_clusters(data: np.ndarray, k: int, rng: np.random.Generator) -> List[Cluster]:
    """
    Initialize k clusters centered on points drawn uniformly from the data.

    Draws are independent, so the same point may be drawn more than once.

    Args:
        data: Data matrix
        k: Number of clusters
        rng: Random generator

    Returns:
        List of initialized clusters
    """
    indices = rng.integers(0, data.shape[0], size=k)
    return [Cluster(data[idx], [], i) for i, idx in enumerate(indices)]


def assign_points_to_clusters(data: np.ndarray, clusters: List[Cluster]) -> np.ndarray:
    """
    Assign each data point to the nearest cluster.

    Ties go to the cluster that comes first.

    Args:
        data: Data matrix
        clusters: List of clusters

    Returns:
        Cluster position of each point
    """
    for cluster in clusters:
        cluster.clear_members()

    centers = np.array([cluster.center for cluster in clusters])
    distances = np.linalg.norm(data[:, np.newaxis, :] - centers[np.newaxis, :, :], axis=2)
    labels = np.argmin(distances, axis=1)

    for i, label in enumerate(labels):
        clusters[label].add_member(i)

    return labels


def update_cluster_centers(data: np.ndarray, clusters: List[Cluster]) -> None:
    """
    Update the centers of all clusters.

    Args:
        data: Data matrix
        clusters: List of clusters
    """
    for cluster in clusters:
        cluster.update_center(data)


def max_center_shift(before: np.ndarray, after: np.ndarray) -> float:
    """
    Largest Euclidean distance any center moved.

    Args:
        before: Centers before an update, one per row
        after: Centers after the update

    Returns:
        Maximum movement
    """
    if len(before) == 0:
        return 0.0
    return float(np.max(np.linalg.norm(after - before, axis=1)))


def distance_matrix(data: np.ndarray) -> np.ndarray:
    """
    Calculate the distance matrix for a set of points.

    Args:
        data: Data matrix

    Returns:
        Matrix of pairwise Euclidean distances
    """
    if data.shape[0] < 2:
        return np.zeros((data.shape[0], data.shape[0]))
    return squareform(pdist(data, metric='euclidean'))


def silhouette(data: np.ndarray, labels: Union[Sequence[int], np.ndarray]) -> float:
    """
    Calculate the silhouette coefficient for a clustering.

    For each point, a is the mean distance to the other members of its
    cluster (0 for a singleton) and b is the smallest mean distance to the
    members of another non-empty cluster. The point scores
    (b - a) / max(a, b), or 0 when both are 0. The result is the mean over
    all points, and 0 when fewer than two clusters are non-empty.

    Args:
        data: Data matrix
        labels: Cluster label of each point

    Returns:
        Silhouette coefficient (between -1 and 1)
    """
    data = np.asarray(data, dtype=float)
    if data.ndim == 1:
        data = data.reshape(-1, 1)
    labels = np.asarray(labels)
    if data.shape[0] == 0:
        return 0.0

    cluster_ids = np.unique(labels)
    if len(cluster_ids) < 2:
        return 0.0

    dist = distance_matrix(data)

    # Sum of distances from every point to every cluster, and cluster sizes
    sums = np.column_stack([dist[:, labels == c].sum(axis=1) for c in cluster_ids])
    sizes = np.array([np.sum(labels == c) for c in cluster_ids], dtype=float)
    own = np.searchsorted(cluster_ids, labels)

    n = data.shape[0]
    rows = np.arange(n)

    own_sizes = sizes[own]
    a = np.where(own_sizes > 1, sums[rows, own] / np.maximum(own_sizes - 1, 1), 0.0)

    means = sums / sizes
    means[rows, own] = np.inf
    b = np.min(means, axis=1)

    denom = np.maximum(a, b)
    scores = np.where(denom > 0, (b - a) / np.where(denom > 0, denom, 1.0), 0.0)

    return float(np.clip(np.mean(scores), -1.0, 1.0))


def inertia(data: np.ndarray, centers: np.ndarray, labels: np.ndarray) -> float:
    """
    Sum of squared distances from each point to its cluster center.

    Args:
        data: Data matrix
        centers: Cluster centers, one per row
        labels: Cluster position of each point

    Returns:
        Inertia
    """
    if data.shape[0] == 0:
        return 0.0
    return float(np.sum((data - centers[labels]) ** 2))


def kmeans(data: Union[np.ndarray, Sequence[Sequence[float]]],
           k: int,
           max_iters: int = MAX_ITERS,
           tolerance: float = TOLERANCE,
           random_state: RandomState = None) -> ClusterPartition:
    """
    Perform K-means clustering on the data.

    Each iteration assigns every point to its nearest center and moves
    every non-empty cluster's center to the mean of its members. The run
    converges once no center moves by tolerance or more; otherwise it stops
    after max_iters iterations.

    Args:
        data: Data matrix (points as rows); a flat sequence is one-dimensional data
        k: Number of clusters
        max_iters: Maximum number of iterations
        tolerance: Center movement below which the run has converged
        random_state: Seed or Generator for the initial centers

    Returns:
        ClusterPartition

    Raises:
        ValueError: If k is less than 1
    """
    if k < 1:
        raise ValueError(f"k must be at least 1, got {k}")

    data = np.asarray(data, dtype=float)
    if data.ndim == 1:
        data = data.reshape(-1, 1)

    n_points = data.shape[0]
    if n_points == 0:
        return ClusterPartition(
            k=k, centroids=(), labels=(), members=(), iterations=0,
            converged=False, silhouette_score=0.0, inertia=0.0
        )

    if k > n_points:
        logger.warning(f"k={k} exceeds the {n_points} available points, using k={n_points}")
        k = n_points

    rng = get_rng(random_state)
    clusters = init_clusters(data, k, rng)
    labels = np.zeros(n_points, dtype=int)

    converged = False
    iterations = 0
    for _ in range(max_iters):
        before = np.array([cluster.center for cluster in clusters])

        labels = assign_points_to_clusters(data, clusters)
        update_cluster_centers(data, clusters)
        iterations += 1

        after = np.array([cluster.center for cluster in clusters])
        shift = max_center_shift(before, after)
        logger.debug(f"k={k} iteration {iterations}: max center shift {shift:.6f}")

        if shift < tolerance:
            converged = True
            break

    centers = np.array([cluster.center for cluster in clusters])

    return ClusterPartition(
        k=k,
        centroids=tuple(tuple(float(x) for x in center) for center in centers),
        labels=tuple(int(label) for label in labels),
        members=tuple(tuple(cluster.members) for cluster in clusters),
        iterations=iterations,
        converged=converged,
        silhouette_score=silhouette(data, labels) if k > 1 else 0.0,
        inertia=inertia(data, centers, labels)
    )


def cluster_named_matrix(nmat: NamedMatrix,
                         k: int,
                         max_iters: int = MAX_ITERS,
                         tolerance: float = TOLERANCE,
                         random_state: RandomState = None) -> ClusterPartition:
    """
    Cluster the rows of a NamedMatrix.

    Args:
        nmat: NamedMatrix to cluster (rows are points)
        k: Number of clusters
        max_iters: Maximum number of iterations
        tolerance: Convergence threshold on center movement
        random_state: Seed or Generator for the initial centers

    Returns:
        ClusterPartition carrying the matrix row names
    """
    partition = kmeans(nmat.values, k, max_iters, tolerance, random_state)
    return with_row_names(partition, nmat.rownames())


def with_row_names(partition: ClusterPartition, row_names: Sequence[Any]) -> ClusterPartition:
    """Return a copy of partition that carries the given row names."""
    return replace(partition, row_names=tuple(row_names))
