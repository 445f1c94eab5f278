"""
Unit tests for PhysicsState.

Tests cover:
- Integration and toroidal wraparound
- Drag
- Inertia blending and energy-scaled caps
- Rotation momentum
- Toroidal direction/distance queries
- Tiered energy cost
- Collision response
"""

import math

import numpy as np
import pytest

from geneuron.core.config import PhysicsConfig
from geneuron.core.physics import PhysicsState
from geneuron.utils.spatial import TWO_PI


BOUNDS = (800.0, 600.0)


@pytest.fixture
def no_drag() -> PhysicsConfig:
    return PhysicsConfig(drag=1.0)


# ---------------------------------------------------------------------------
# Integration
# ---------------------------------------------------------------------------

class TestIntegrate:

    def test_moves_by_velocity(self, no_drag):
        p = PhysicsState(100.0, 100.0, config=no_drag)
        p.velocity[:] = [30.0, -60.0]
        p.integrate(0.5, BOUNDS)
        assert (p.x, p.y) == pytest.approx((115.0, 70.0))

    def test_wraps_right_edge(self, no_drag):
        p = PhysicsState(799.0, 300.0, config=no_drag)
        p.velocity[:] = [10.0, 0.0]
        p.integrate(1.0, BOUNDS)
        assert p.x == pytest.approx(9.0)
        assert p.y == pytest.approx(300.0)

    def test_wraps_negative(self, no_drag):
        p = PhysicsState(1.0, 1.0, config=no_drag)
        p.velocity[:] = [-3.0, -2.0]
        p.integrate(1.0, BOUNDS)
        assert (p.x, p.y) == pytest.approx((798.0, 599.0))

    def test_always_in_bounds(self):
        rng = np.random.default_rng(0)
        p = PhysicsState(400.0, 300.0)
        for _ in range(500):
            p.velocity[:] = rng.uniform(-5000, 5000, 2)
            p.integrate(0.1, BOUNDS)
            assert 0.0 <= p.x < 800.0
            assert 0.0 <= p.y < 600.0

    def test_drag_applied_after_move(self):
        p = PhysicsState(0.0, 0.0, config=PhysicsConfig(drag=0.5))
        p.velocity[:] = [10.0, 0.0]
        p.integrate(1.0, BOUNDS)
        assert p.x == pytest.approx(10.0)
        assert p.velocity[0] == pytest.approx(5.0)


# ---------------------------------------------------------------------------
# Forces
# ---------------------------------------------------------------------------

class TestApplyForce:

    def test_full_energy_uses_min_inertia(self):
        cfg = PhysicsConfig()
        p = PhysicsState(0.0, 0.0, config=cfg)
        p.apply_force((100.0, 0.0), 0.0, 1.0)
        assert p.velocity[0] == pytest.approx(100.0 * (1 - cfg.min_inertia))

    def test_zero_energy_uses_max_inertia(self):
        cfg = PhysicsConfig()
        p = PhysicsState(0.0, 0.0, config=cfg)
        p.apply_force((100.0, 0.0), 0.0, 0.0)
        assert p.velocity[0] == pytest.approx(100.0 * (1 - cfg.max_inertia))

    def test_speed_capped(self):
        cfg = PhysicsConfig(min_inertia=0.0, max_speed=50.0)
        p = PhysicsState(0.0, 0.0, config=cfg)
        p.apply_force((1000.0, 0.0), 0.0, 1.0)
        assert p.speed == pytest.approx(50.0)

    def test_speed_cap_scales_with_energy(self):
        cfg = PhysicsConfig(min_inertia=0.0, max_inertia=0.0, max_speed=100.0, low_energy_floor=0.3)
        p = PhysicsState(0.0, 0.0, config=cfg)
        p.apply_force((1000.0, 0.0), 0.0, 0.0)
        assert p.speed == pytest.approx(30.0)

    def test_energy_above_one_clamped(self):
        cfg = PhysicsConfig(min_inertia=0.0, max_speed=100.0)
        p = PhysicsState(0.0, 0.0, config=cfg)
        p.apply_force((1000.0, 0.0), 0.0, 1.5)
        assert p.speed == pytest.approx(100.0)

    def test_rotation_accumulates_and_decays(self):
        cfg = PhysicsConfig(rotation_decay=0.5, max_rotation_momentum=10.0)
        p = PhysicsState(0.0, 0.0, rotation=1.0, config=cfg)
        p.apply_force((0.0, 0.0), 0.2, 1.0)
        assert p.rotation_momentum == pytest.approx(0.2)
        assert p.rotation == pytest.approx(1.2)
        p.apply_force((0.0, 0.0), 0.0, 1.0)
        assert p.rotation_momentum == pytest.approx(0.1)
        assert p.rotation == pytest.approx(1.3)

    def test_rotation_momentum_capped(self):
        cfg = PhysicsConfig(max_rotation_momentum=0.3)
        p = PhysicsState(0.0, 0.0, config=cfg)
        p.apply_force((0.0, 0.0), 5.0, 1.0)
        assert p.rotation_momentum == pytest.approx(0.3)
        p.apply_force((0.0, 0.0), -50.0, 1.0)
        assert p.rotation_momentum == pytest.approx(-0.3)

    def test_rotation_wraps(self):
        p = PhysicsState(0.0, 0.0, rotation=TWO_PI - 0.05)
        p.apply_force((0.0, 0.0), 0.1, 1.0)
        assert 0.0 <= p.rotation < TWO_PI
        assert p.rotation == pytest.approx(0.05)


# ---------------------------------------------------------------------------
# Geometry
# ---------------------------------------------------------------------------

class TestDirection:

    def test_distance_across_seam(self):
        p = PhysicsState(795.0, 300.0)
        assert p.distance_to((5.0, 300.0), BOUNDS) == pytest.approx(10.0)

    def test_direction_ahead(self):
        p = PhysicsState(100.0, 100.0, rotation=0.0)
        d, a = p.direction_to((150.0, 100.0), BOUNDS)
        assert d == pytest.approx(50.0)
        assert a == pytest.approx(0.0)

    def test_direction_left_and_right(self):
        p = PhysicsState(100.0, 100.0, rotation=0.0)
        _, a_pos = p.direction_to((100.0, 150.0), BOUNDS)
        _, a_neg = p.direction_to((100.0, 50.0), BOUNDS)
        assert a_pos == pytest.approx(math.pi / 2)
        assert a_neg == pytest.approx(-math.pi / 2)

    def test_direction_through_seam(self):
        p = PhysicsState(795.0, 300.0, rotation=0.0)
        d, a = p.direction_to((5.0, 300.0), BOUNDS)
        assert d == pytest.approx(10.0)
        assert a == pytest.approx(0.0)

    def test_zero_distance_no_nan(self):
        p = PhysicsState(10.0, 10.0, rotation=2.0)
        assert p.direction_to((10.0, 10.0), BOUNDS) == (0.0, 0.0)

    def test_angle_normalized(self):
        p = PhysicsState(100.0, 100.0, rotation=3 * math.pi / 2)
        _, a = p.direction_to((150.0, 100.0), BOUNDS)
        assert -math.pi <= a <= math.pi
        assert a == pytest.approx(math.pi / 2)


# ---------------------------------------------------------------------------
# Energy cost
# ---------------------------------------------------------------------------

class TestEnergyCost:

    def test_idle_pays_base_only(self):
        cfg = PhysicsConfig()
        p = PhysicsState(0.0, 0.0, config=cfg)
        p.velocity[:] = [cfg.idle_speed * 0.5, 0.0]
        assert p.energy_cost(1.0) == pytest.approx(cfg.base_metabolism)

    def test_linear_tier(self):
        cfg = PhysicsConfig()
        p = PhysicsState(0.0, 0.0, config=cfg)
        p.velocity[:] = [50.0, 0.0]
        assert p.energy_cost(1.0) == pytest.approx(cfg.base_metabolism + cfg.k_linear * 50.0)

    def test_quadratic_tier(self):
        cfg = PhysicsConfig()
        p = PhysicsState(0.0, 0.0, config=cfg)
        p.velocity[:] = [cfg.cruise_speed + 20.0, 0.0]
        expected = cfg.base_metabolism + cfg.k_linear * cfg.cruise_speed + cfg.k_quadratic * 400.0
        assert p.energy_cost(1.0) == pytest.approx(expected)

    def test_monotonic_in_speed(self):
        p = PhysicsState(0.0, 0.0)
        costs = []
        for speed in (0.0, 10.0, 60.0, 100.0, 200.0):
            p.velocity[:] = [speed, 0.0]
            costs.append(p.energy_cost(1.0))
        assert costs == sorted(costs)

    def test_rotation_costs_energy(self):
        cfg = PhysicsConfig()
        p = PhysicsState(0.0, 0.0, config=cfg)
        base = p.energy_cost(1.0)
        p.rotation_momentum = -0.2
        assert p.energy_cost(1.0) == pytest.approx(base + cfg.k_rotation * 0.2)

    def test_scales_with_dt(self):
        p = PhysicsState(0.0, 0.0)
        p.velocity[:] = [120.0, 0.0]
        assert p.energy_cost(0.5) == pytest.approx(p.energy_cost(1.0) / 2)


# ---------------------------------------------------------------------------
# Collisions
# ---------------------------------------------------------------------------

class TestCollision:

    def test_velocities_swapped_and_damped(self):
        cfg = PhysicsConfig(collision_damping=0.8, collision_jitter=0.0)
        a = PhysicsState(0.0, 0.0, config=cfg)
        b = PhysicsState(5.0, 0.0, config=cfg)
        a.velocity[:] = [10.0, 0.0]
        b.velocity[:] = [-20.0, 5.0]
        a.collide_with(b, np.random.default_rng(0))
        assert a.velocity.tolist() == pytest.approx([-16.0, 4.0])
        assert b.velocity.tolist() == pytest.approx([8.0, 0.0])

    def test_jitter_bounded(self):
        cfg = PhysicsConfig(collision_damping=1.0, collision_jitter=0.2)
        rng = np.random.default_rng(3)
        a = PhysicsState(0.0, 0.0, config=cfg)
        b = PhysicsState(5.0, 0.0, config=cfg)
        a.collide_with(b, rng)
        assert np.all(np.abs(a.velocity) <= 0.1)
        assert np.all(np.abs(b.velocity) <= 0.1)
        assert a.speed > 0.0 or b.speed > 0.0
