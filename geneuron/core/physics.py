"""
Kinematic state of a creature on the toroidal plane.

Velocity responds to commanded force through an energy-dependent inertia;
heading changes through a decaying rotation momentum rather than snapping
to a target. Integration wraps positions; the world has no edges.
"""

from __future__ import annotations

import math
from typing import Optional, Sequence

import numpy as np
from numpy.typing import NDArray

from geneuron.core.config import PhysicsConfig
from geneuron.utils.encoding import clamp
from geneuron.utils.spatial import (
    normalize_angle,
    toroidal_delta,
    wrap_coordinate,
    wrap_rotation,
)


class PhysicsState:
    """
    Position, velocity, heading and energy of one body.

    Attributes:
        position: (2,) float array, always within [0, width) x [0, height)
                  after `integrate`.
        velocity: (2,) float array, units per second.
        rotation: Heading in radians, [0, 2*pi).
        rotation_momentum: Accumulated turning, radians per step.
        energy: Energy level; nominally [-0.2, 1.5].
    """

    __slots__ = ("position", "velocity", "rotation", "rotation_momentum", "energy", "_config")

    def __init__(
        self,
        x: float,
        y: float,
        rotation: float = 0.0,
        energy: float = 1.0,
        config: Optional[PhysicsConfig] = None,
    ):
        self.position = np.array([x, y], dtype=np.float64)
        self.velocity = np.zeros(2, dtype=np.float64)
        self.rotation = wrap_rotation(rotation)
        self.rotation_momentum = 0.0
        self.energy = float(energy)
        self._config = config if config is not None else PhysicsConfig()

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def x(self) -> float:
        return float(self.position[0])

    @property
    def y(self) -> float:
        return float(self.position[1])

    @property
    def speed(self) -> float:
        """Magnitude of the velocity vector."""
        return float(math.hypot(self.velocity[0], self.velocity[1]))

    # ------------------------------------------------------------------
    # Integration
    # ------------------------------------------------------------------

    def integrate(self, dt: float, bounds: tuple[float, float]) -> None:
        """
        Advance position by velocity * dt and wrap onto the torus.

        Drag is applied to the velocity after moving.

        Args:
            dt: Time step in seconds.
            bounds: (width, height) of the plane.
        """
        self.position += self.velocity * dt
        self.wrap(bounds)
        self.velocity *= self._config.drag

    def collide_with(self, other: PhysicsState, rng: np.random.Generator) -> None:
        """
        Bounce off another body: swap velocities, damp both, and add a
        small random kick so touching bodies don't stay stuck together.
        """
        c = self._config
        mine = self.velocity.copy()
        self.velocity = other.velocity * c.collision_damping
        other.velocity = mine * c.collision_damping
        if c.collision_jitter > 0:
            self.velocity += (rng.random(2) - 0.5) * c.collision_jitter
            other.velocity += (rng.random(2) - 0.5) * c.collision_jitter

    def wrap(self, bounds: tuple[float, float]) -> None:
        """Reduce the position into [0, width) x [0, height)."""
        width, height = bounds
        self.position[0] = wrap_coordinate(float(self.position[0]), width)
        self.position[1] = wrap_coordinate(float(self.position[1]), height)

    def _energy_scale(self, energy_level: float) -> float:
        """Fraction of speed/turn caps available at this energy level."""
        floor = self._config.low_energy_floor
        return floor + (1.0 - floor) * clamp(energy_level, 0.0, 1.0)

    def apply_force(
        self,
        force: Sequence[float],
        rotation_force: float,
        energy_level: float,
    ) -> None:
        """
        Steer the body.

        Velocity is blended toward `force`: high energy gives low inertia
        (responsive), low energy gives high inertia (sluggish). Speed is then
        capped at an energy-scaled maximum. `rotation_force` accumulates into
        the decaying rotation momentum, which is capped at an energy-scaled
        magnitude and added to the heading.

        Args:
            force: Target velocity vector (2 values).
            rotation_force: Turning impulse in radians.
            energy_level: Energy used to scale inertia and caps.
        """
        c = self._config
        e = clamp(energy_level, 0.0, 1.0)
        inertia = c.max_inertia - (c.max_inertia - c.min_inertia) * e
        target = np.asarray(force, dtype=np.float64)
        self.velocity = self.velocity * inertia + target * (1.0 - inertia)

        scale = self._energy_scale(energy_level)
        max_speed = c.max_speed * scale
        speed = self.speed
        if speed > max_speed:
            self.velocity *= max_speed / speed

        max_momentum = c.max_rotation_momentum * scale
        momentum = self.rotation_momentum * c.rotation_decay + rotation_force
        self.rotation_momentum = clamp(momentum, -max_momentum, max_momentum)
        self.rotation = wrap_rotation(self.rotation + self.rotation_momentum)

    # ------------------------------------------------------------------
    # Toroidal geometry
    # ------------------------------------------------------------------

    def offset_to(self, point: Sequence[float], bounds: tuple[float, float]) -> tuple[float, float]:
        """Shortest signed (dx, dy) from this body to `point`."""
        width, height = bounds
        dx = toroidal_delta(float(self.position[0]), float(point[0]), width)
        dy = toroidal_delta(float(self.position[1]), float(point[1]), height)
        return dx, dy

    def distance_to(self, point: Sequence[float], bounds: tuple[float, float]) -> float:
        """Shortest toroidal distance to `point`."""
        dx, dy = self.offset_to(point, bounds)
        return math.hypot(dx, dy)

    def direction_to(
        self,
        point: Sequence[float],
        bounds: tuple[float, float],
    ) -> tuple[float, float]:
        """
        Distance and steering angle toward `point`.

        Returns:
            (distance, angle) where angle is the signed difference between
            the bearing to the point and the current heading, in [-pi, pi].
            A point at zero distance yields (0.0, 0.0).
        """
        dx, dy = self.offset_to(point, bounds)
        distance = math.hypot(dx, dy)
        if distance == 0.0:
            return 0.0, 0.0
        bearing = math.atan2(dy, dx)
        return distance, normalize_angle(bearing - self.rotation)

    # ------------------------------------------------------------------
    # Energy
    # ------------------------------------------------------------------

    def energy_cost(self, dt: float) -> float:
        """
        Energy spent over `dt` seconds at the current speed and turn rate.

        Speed tiers: below idle_speed movement is free, up to cruise_speed
        the cost is linear, above it a quadratic term is added on the excess.
        A base metabolism and a term proportional to |rotation_momentum|
        always apply.
        """
        c = self._config
        speed = self.speed
        if speed <= c.idle_speed:
            movement = 0.0
        elif speed <= c.cruise_speed:
            movement = c.k_linear * speed
        else:
            excess = speed - c.cruise_speed
            movement = c.k_linear * c.cruise_speed + c.k_quadratic * excess * excess
        rotation = c.k_rotation * abs(self.rotation_momentum)
        return (c.base_metabolism + movement + rotation) * dt

    def __repr__(self) -> str:
        return (
            f"PhysicsState(pos=({self.x:.1f},{self.y:.1f}), speed={self.speed:.2f}, "
            f"rot={self.rotation:.2f}, energy={self.energy:.3f})"
        )
