"""
Dynamic time warping between two point sequences.

Aligns the canonical pose model with the live normalized contour: the cost
matrix holds pairwise point distances, the accumulated-cost table is filled
by the classic three-way recurrence, and backtracking from the last cell
yields a monotone alignment path.
"""

from __future__ import annotations

from typing import List, Sequence, Tuple

import numpy as np
from scipy.spatial.distance import cdist


def compute_cost_matrix(
    model_points: Sequence[Sequence[float]],
    contour_points: Sequence[Sequence[float]],
    squared: bool = True,
) -> np.ndarray:
    """
    Pairwise distances, shape (len(model_points), len(contour_points)).

    Args:
        model_points: pose model points
        contour_points: normalized contour points
        squared: use squared Euclidean distance instead of Euclidean
    """
    a = np.asarray(model_points, dtype=np.float64).reshape(-1, 2)
    b = np.asarray(contour_points, dtype=np.float64).reshape(-1, 2)
    return cdist(a, b, 'sqeuclidean' if squared else 'euclidean')


def compute_dtw_indexes(cost: np.ndarray) -> List[Tuple[int, int]]:
    """
    Minimum-cost warping path through a cost matrix.

    Args:
        cost: Array of shape (N, M).

    Returns:
        (row, col) pairs from (0, 0) to (N - 1, M - 1), non-decreasing in
        both coordinates. Empty if the matrix is empty.
    """
    if cost.ndim != 2:
        raise ValueError(f"Expected a 2D cost matrix, got shape {cost.shape}")

    N, M = cost.shape
    if N == 0 or M == 0:
        return []

    acc = np.full((N, M), np.inf, dtype=np.float64)
    acc[0, 0] = cost[0, 0]
    for i in range(1, N):
        acc[i, 0] = acc[i - 1, 0] + cost[i, 0]
    for j in range(1, M):
        acc[0, j] = acc[0, j - 1] + cost[0, j]

    for i in range(1, N):
        for j in range(1, M):
            acc[i, j] = cost[i, j] + min(acc[i - 1, j - 1], acc[i - 1, j], acc[i, j - 1])

    # Backtrack; diagonal wins ties so the path stays short
    i, j = N - 1, M - 1
    path = [(i, j)]
    while i > 0 or j > 0:
        if i == 0:
            j -= 1
        elif j == 0:
            i -= 1
        else:
            candidates = (
                (acc[i - 1, j - 1], i - 1, j - 1),
                (acc[i - 1, j], i - 1, j),
                (acc[i, j - 1], i, j - 1),
            )
            _, i, j = min(candidates, key=lambda c: c[0])
        path.append((i, j))
    path.reverse()

    return [(int(a), int(b)) for a, b in path]


def alignment_cost(cost: np.ndarray, path: Sequence[Tuple[int, int]]) -> float:
    """Total cost along a warping path."""
    if not path:
        return 0.0
    rows, cols = zip(*path)
    return float(np.sum(cost[list(rows), list(cols)]))
