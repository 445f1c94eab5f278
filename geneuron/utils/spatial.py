"""
Spatial utilities for the Geneuron simulator.

Provides toroidal (wrap-around) plane math: coordinate wrapping, shortest
signed displacement, distance calculations (scalar and vectorized), angle
normalization and midpoints.

All functions assume a continuous 2D plane with dimensions (width, height)
where coordinates wrap: x mod width, y mod height.
"""

from __future__ import annotations

import math

import numpy as np
from numpy.typing import NDArray


TWO_PI = 2.0 * math.pi


def wrap_coordinate(value: float, size: float) -> float:
    """
    Reduce a coordinate into [0, size).

    Python's float modulo can return `size` itself for tiny negative inputs
    (e.g. -1e-17 % 600.0 == 600.0), so that case folds back to 0.
    """
    wrapped = value % size
    if wrapped >= size:
        wrapped = 0.0
    return wrapped


def toroidal_wrap(x: float, y: float, width: float, height: float) -> tuple[float, float]:
    """
    Wrap (x, y) coordinates to stay within plane bounds.

    Args:
        x, y: Raw coordinates (may be negative or >= dimensions).
        width, height: Plane dimensions.

    Returns:
        Wrapped (x, y) tuple within [0, width) and [0, height).
    """
    return wrap_coordinate(x, width), wrap_coordinate(y, height)


def toroidal_delta(a: float, b: float, size: float) -> float:
    """
    Compute the signed shortest displacement from a to b on a toroidal axis.

    Returns a value in [-size/2, size/2].

    Args:
        a: Source coordinate.
        b: Target coordinate.
        size: Axis length.

    Returns:
        Signed shortest displacement (negative = go backwards).
    """
    raw = (b - a) % size
    if raw > size / 2:
        raw -= size
    return raw


def toroidal_distance_sq(
    x1: float, y1: float,
    x2: float, y2: float,
    width: float, height: float,
) -> float:
    """Squared Euclidean distance on a torus (cheap for comparisons)."""
    dx = toroidal_delta(x1, x2, width)
    dy = toroidal_delta(y1, y2, height)
    return dx * dx + dy * dy


def toroidal_distance(
    x1: float, y1: float,
    x2: float, y2: float,
    width: float, height: float,
) -> float:
    """
    Compute Euclidean distance on a torus.

    Each axis independently takes the shorter of the direct and the wrapped
    offset, so the result never exceeds sqrt((w/2)^2 + (h/2)^2).
    """
    return math.sqrt(toroidal_distance_sq(x1, y1, x2, y2, width, height))


def toroidal_distances_from(
    x: float, y: float,
    positions: NDArray[np.float64],
    width: float, height: float,
) -> NDArray[np.float64]:
    """
    Vectorized toroidal distance from one point to many.

    Args:
        x, y: Reference point.
        positions: (N, 2) array of points.
        width, height: Plane dimensions.

    Returns:
        (N,) array of distances. Empty input gives an empty array.
    """
    if len(positions) == 0:
        return np.empty(0, dtype=np.float64)
    d = np.abs(positions - np.array([x, y], dtype=np.float64))
    bounds = np.array([width, height], dtype=np.float64)
    d = np.minimum(d, bounds - d)
    return np.sqrt(np.sum(d * d, axis=1))


def pairwise_toroidal_distances(
    positions: NDArray[np.float64],
    width: float, height: float,
) -> NDArray[np.float64]:
    """
    Full (N, N) matrix of toroidal distances between points.

    The diagonal is zero. Used once per tick to build the read-only
    neighbour snapshot for every agent.
    """
    n = len(positions)
    if n == 0:
        return np.empty((0, 0), dtype=np.float64)
    d = np.abs(positions[:, None, :] - positions[None, :, :])
    bounds = np.array([width, height], dtype=np.float64)
    d = np.minimum(d, bounds - d)
    return np.sqrt(np.sum(d * d, axis=2))


def normalize_angle(angle: float) -> float:
    """Map an angle (radians) into [-pi, pi]."""
    wrapped = (angle + math.pi) % TWO_PI - math.pi
    # (-pi) and (+pi) are the same heading; keep the sign of the input
    if wrapped == -math.pi and angle > 0:
        return math.pi
    return wrapped


def wrap_rotation(angle: float) -> float:
    """Map an angle (radians) into [0, 2*pi)."""
    return wrap_coordinate(angle, TWO_PI)


def toroidal_midpoint(
    x1: float, y1: float,
    x2: float, y2: float,
    width: float, height: float,
) -> tuple[float, float]:
    """
    Midpoint of the shortest segment between two points on a torus.

    Returns:
        Wrapped (x, y) midpoint.
    """
    mx = x1 + toroidal_delta(x1, x2, width) / 2
    my = y1 + toroidal_delta(y1, y2, height) / 2
    return toroidal_wrap(mx, my, width, height)


def random_point(
    width: float, height: float,
    rng: np.random.Generator,
) -> tuple[float, float]:
    """Uniformly random point on the plane."""
    return float(rng.uniform(0.0, width)), float(rng.uniform(0.0, height))


def random_point_near(
    x: float, y: float,
    spread: float,
    width: float, height: float,
    rng: np.random.Generator,
) -> tuple[float, float]:
    """
    Random point within +/- spread of (x, y) on each axis, wrapped.

    Args:
        x, y: Center position.
        spread: Maximum offset per axis.
        width, height: Plane dimensions.
        rng: Random generator.

    Returns:
        Wrapped (x, y) position.
    """
    dx = float(rng.uniform(-spread, spread)) if spread > 0 else 0.0
    dy = float(rng.uniform(-spread, spread)) if spread > 0 else 0.0
    return toroidal_wrap(x + dx, y + dy, width, height)
