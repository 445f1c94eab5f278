"""
Genome encoding utilities.

A genome is the flat float vector view of a controller's parameters.
This module converts between a list of parameter arrays and that flat
vector, and implements the recombination operator used at reproduction.

Flattening order is the order of the arrays passed in, each array in
row-major (C) order. `flatten_params` and `unflatten_into` must always be
called with the same array order to round-trip.
"""

from __future__ import annotations

from typing import Sequence

import numpy as np
from numpy.typing import NDArray


def genome_length(arrays: Sequence[NDArray[np.float64]]) -> int:
    """Total number of scalars across all parameter arrays."""
    return int(sum(a.size for a in arrays))


def flatten_params(arrays: Sequence[NDArray[np.float64]]) -> NDArray[np.float64]:
    """
    Concatenate parameter arrays into one flat genome (copy).

    Examples:
        >>> flatten_params([np.array([[1.0, 2.0]]), np.array([3.0])])
        array([1., 2., 3.])
    """
    if not arrays:
        return np.empty(0, dtype=np.float64)
    return np.concatenate([np.ravel(a) for a in arrays]).astype(np.float64)


def unflatten_into(
    values: NDArray[np.float64],
    arrays: Sequence[NDArray[np.float64]],
) -> int:
    """
    Write genome values back into parameter arrays, in place.

    Writing stops when either the values or the arrays run out, so a short
    genome leaves trailing parameters unchanged and a long one has its extra
    entries ignored.

    Args:
        values: Flat genome.
        arrays: Target parameter arrays (modified in place).

    Returns:
        Number of parameters written.
    """
    values = np.asarray(values, dtype=np.float64).ravel()
    offset = 0
    for a in arrays:
        if offset >= len(values):
            break
        take = min(a.size, len(values) - offset)
        flat = a.reshape(-1)
        flat[:take] = values[offset:offset + take]
        offset += take
    return offset


def single_point_crossover(
    genome_a: NDArray[np.float64],
    genome_b: NDArray[np.float64],
    rng: np.random.Generator,
) -> NDArray[np.float64]:
    """
    Recombine two genomes at one random split point.

    Genes before the split come from A, genes from the split onward from B.
    The split is drawn from [0, len] inclusive, so a child may be a full copy
    of either parent.

    Raises:
        ValueError: If lengths don't match.
    """
    if len(genome_a) != len(genome_b):
        raise ValueError(
            f"Cannot cross genomes of length {len(genome_a)} and {len(genome_b)}"
        )
    split = int(rng.integers(0, len(genome_a) + 1))
    child = np.empty(len(genome_a), dtype=np.float64)
    child[:split] = genome_a[:split]
    child[split:] = genome_b[split:]
    return child


def clamp(value: float, low: float, high: float) -> float:
    """Clamp a value to [low, high]."""
    return max(low, min(high, value))
