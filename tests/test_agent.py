"""
Unit tests for Agent.

Tests cover:
- Creation, IDs, brain shape checks
- Sensor vector layout, sentinels and focus re-weighting
- Behavior state priority table and re-evaluation timer
- Decision scaling and the energy multiplier
- Eating, death, reproduction gating and offspring
"""

import math

import numpy as np
import pytest

from geneuron.core.agent import (
    Agent,
    AgentSummary,
    BehaviorState,
    Gender,
    Perception,
    SENSOR_SIZE,
    reset_agent_id_counter,
)
from geneuron.core.config import SimConfig
from geneuron.core.neural import FeedForwardNetwork
from geneuron.core.physics import PhysicsState
from geneuron.utils.spatial import TWO_PI, toroidal_distance


BOUNDS = (800.0, 600.0)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def reset_ids():
    reset_agent_id_counter()
    yield
    reset_agent_id_counter()


@pytest.fixture
def config() -> SimConfig:
    return SimConfig()


@pytest.fixture
def rng() -> np.random.Generator:
    return np.random.default_rng(42)


def make_agent(
    config: SimConfig,
    rng: np.random.Generator,
    x: float = 100.0,
    y: float = 100.0,
    gender: Gender = Gender.MALE,
    energy: float = 1.0,
    rotation: float = 0.0,
) -> Agent:
    agent = Agent.create_random(x, y, config, rng)
    agent.gender = gender
    agent.physics.energy = energy
    agent.physics.rotation = rotation
    return agent


def summary(
    index: int = 1,
    position: tuple[float, float] = (130.0, 100.0),
    gender: Gender = Gender.FEMALE,
    cooldown: float = 0.0,
    energy: float = 1.0,
) -> AgentSummary:
    return AgentSummary(index, position, gender, cooldown, energy)


# ---------------------------------------------------------------------------
# Creation
# ---------------------------------------------------------------------------

class TestCreation:

    def test_create_random_defaults(self, config, rng):
        a = Agent.create_random(10.0, 20.0, config, rng)
        assert a.position == (10.0, 20.0)
        assert a.energy == config.energy.birth_energy
        assert a.age == 0.0
        assert a.fitness == 0.0
        assert a.generation == 0
        assert a.behavior_state is BehaviorState.EXPLORING
        assert a.brain.input_size == SENSOR_SIZE
        assert len(a.genome) == a.brain.genome_length
        assert 0.0 <= a.rotation < TWO_PI

    def test_ids_unique_and_resettable(self, config, rng):
        ids = [Agent.create_random(0.0, 0.0, config, rng).id for _ in range(5)]
        assert ids == [0, 1, 2, 3, 4]
        reset_agent_id_counter()
        assert Agent.create_random(0.0, 0.0, config, rng).id == 0

    def test_both_genders_occur(self, config, rng):
        genders = {Agent.create_random(0.0, 0.0, config, rng).gender for _ in range(40)}
        assert genders == {Gender.MALE, Gender.FEMALE}

    def test_wrong_brain_size_raises(self, config, rng):
        brain = FeedForwardNetwork(4, 2, rng=rng)
        with pytest.raises(ValueError):
            Agent(PhysicsState(0.0, 0.0), brain, Gender.MALE, config)

    def test_set_genome_updates_mirror(self, config, rng):
        a = make_agent(config, rng)
        new = np.zeros(a.brain.genome_length)
        a.set_genome(new)
        assert np.array_equal(a.genome, new)
        assert np.array_equal(a.brain.extract_genome(), new)

    def test_state_and_gender_visual_hints(self):
        for state in BehaviorState:
            assert len(state.color) == 3
            assert len(state.marker) == 1
        assert Gender.MALE.color != Gender.FEMALE.color
        assert Gender.MALE.opposite is Gender.FEMALE


# ---------------------------------------------------------------------------
# Sensing
# ---------------------------------------------------------------------------

class TestSense:

    def test_nothing_sensed_gives_sentinels(self, config, rng):
        a = make_agent(config, rng, energy=0.8, rotation=math.pi)
        v = a.sense([], [], BOUNDS)
        assert v.shape == (SENSOR_SIZE,)
        assert v[0] == pytest.approx(0.8)
        assert v[1] == pytest.approx(0.0)
        assert v[2] == pytest.approx(0.5)
        assert v[3:].tolist() == [1.0, 0.0, 1.0, 0.0, 1.0, 0.0]

    def test_food_distance_and_angle(self, config, rng):
        a = make_agent(config, rng)
        v = a.sense([(150.0, 100.0), (100.0, 180.0)], [], BOUNDS)
        assert v[3] == pytest.approx(50.0 / 200.0)
        assert v[4] == pytest.approx(0.0)
        assert a.perception.food_count == 2

    def test_food_angle_normalized(self, config, rng):
        a = make_agent(config, rng)
        v = a.sense([(100.0, 150.0)], [], BOUNDS)
        assert v[4] == pytest.approx(0.5)

    def test_distance_clamped(self, config, rng):
        config.behavior.reference_distance = 10.0
        a = make_agent(config, rng)
        v = a.sense([(150.0, 100.0)], [], BOUNDS)
        assert v[3] == 1.0

    def test_feeding_focus_halves_food_distance(self, config, rng):
        a = make_agent(config, rng)
        a.behavior_state = BehaviorState.FEEDING
        v = a.sense([(150.0, 100.0)], [], BOUNDS)
        assert v[3] == pytest.approx(0.5 * 50.0 / 200.0)

    def test_mate_and_peer_classification(self, config, rng):
        a = make_agent(config, rng)
        others = [
            summary(1, (130.0, 100.0), Gender.FEMALE),                 # mate
            summary(2, (100.0, 140.0), Gender.MALE),                   # peer
            summary(3, (110.0, 100.0), Gender.FEMALE, energy=0.1),     # neither
            summary(4, (105.0, 100.0), Gender.FEMALE, cooldown=3.0),   # neither
        ]
        v = a.sense([], others, BOUNDS)
        assert v[5] == pytest.approx(30.0 / 200.0)
        assert v[6] == pytest.approx(0.0)
        assert v[7] == pytest.approx(40.0 / 200.0)
        assert v[8] == pytest.approx(0.5)
        assert a.perception.mate_count == 1
        assert a.perception.peer_count == 1

    def test_reproducing_focus_on_mate(self, config, rng):
        a = make_agent(config, rng)
        a.behavior_state = BehaviorState.REPRODUCING
        v = a.sense([], [summary()], BOUNDS)
        assert v[5] == pytest.approx(0.5 * 30.0 / 200.0)

    def test_resting_focus_on_peer(self, config, rng):
        a = make_agent(config, rng)
        a.behavior_state = BehaviorState.RESTING
        v = a.sense([], [summary(gender=Gender.MALE)], BOUNDS)
        assert v[7] == pytest.approx(0.5 * 30.0 / 200.0)

    def test_sense_through_seam(self, config, rng):
        a = make_agent(config, rng, x=795.0, y=300.0)
        v = a.sense([(5.0, 300.0)], [], BOUNDS)
        assert v[3] == pytest.approx(10.0 / 200.0)
        assert v[4] == pytest.approx(0.0)


# ---------------------------------------------------------------------------
# Behavior states
# ---------------------------------------------------------------------------

class TestBehavior:

    @pytest.mark.parametrize("energy,perception,expected", [
        (0.2, Perception(mate_count=1, food_count=1), BehaviorState.FEEDING),
        (0.8, Perception(mate_count=1, peer_count=3), BehaviorState.REPRODUCING),
        (0.4, Perception(peer_count=2, food_count=1), BehaviorState.RESTING),
        (0.6, Perception(food_count=1, peer_count=2), BehaviorState.FEEDING),
        (0.6, Perception(peer_count=2), BehaviorState.SOCIALIZING),
        (0.6, Perception(peer_count=1), BehaviorState.EXPLORING),
        (0.6, Perception(mate_count=1), BehaviorState.EXPLORING),
        (1.0, Perception(), BehaviorState.EXPLORING),
    ])
    def test_priority_table(self, config, rng, energy, perception, expected):
        a = make_agent(config, rng, energy=energy)
        assert a.evaluate_behavior(perception) is expected

    def test_not_reevaluated_before_interval(self, config, rng):
        a = make_agent(config, rng, energy=0.1)
        assert not a.update_behavior_state(0.2)
        assert a.behavior_state is BehaviorState.EXPLORING
        assert a.behavior_timer == pytest.approx(0.2)

    def test_reevaluated_at_interval(self, config, rng):
        a = make_agent(config, rng, energy=0.1)
        a.update_behavior_state(0.3)
        assert a.update_behavior_state(0.3)
        assert a.behavior_state is BehaviorState.FEEDING
        assert a.behavior_timer == pytest.approx(0.1)

    def test_overshoot_carried_into_next_interval(self, config, rng):
        a = make_agent(config, rng)
        assert a.update_behavior_state(0.75)
        assert a.behavior_timer == 0.25
        # 0.25 + 0.375 reaches the next 0.5 s boundary
        assert a.update_behavior_state(0.375)
        assert a.behavior_timer == 0.125

    def test_reevaluation_period_at_default_dt(self, config, rng):
        a = make_agent(config, rng)
        dt = 1.0 / 30.0
        fired = [i for i in range(1, 301) if a.update_behavior_state(dt)]
        # 10 s of ticks at a 0.5 s interval
        assert len(fired) in (19, 20)

    @pytest.mark.parametrize("energy,expected", [(0.05, 0.3), (0.2, 0.7), (0.3, 1.0), (1.2, 1.0)])
    def test_energy_multiplier(self, config, rng, energy, expected):
        assert make_agent(config, rng, energy=energy).energy_multiplier() == expected


# ---------------------------------------------------------------------------
# Decision and update
# ---------------------------------------------------------------------------

class TestDecide:

    def test_neutral_brain_goes_straight(self, config, rng):
        a = make_agent(config, rng, rotation=0.0)
        a.set_genome(np.zeros(a.brain.genome_length))
        out = a.decide(np.zeros(SENSOR_SIZE))
        assert out == pytest.approx([0.5, 0.5])
        # speed 0.5 * 150 blended with min inertia 0.5
        assert a.velocity[0] == pytest.approx(37.5)
        assert a.velocity[1] == pytest.approx(0.0)
        assert a.rotation == pytest.approx(0.0)

    def test_state_multiplier_scales_speed(self, config, rng):
        a = make_agent(config, rng)
        b = make_agent(config, rng)
        for agent in (a, b):
            agent.set_genome(np.zeros(agent.brain.genome_length))
        b.behavior_state = BehaviorState.RESTING
        a.decide(np.zeros(SENSOR_SIZE))
        b.decide(np.zeros(SENSOR_SIZE))
        assert b.physics.speed == pytest.approx(a.physics.speed * 0.2)

    def test_update_ages_and_spends_energy(self, config, rng):
        a = make_agent(config, rng)
        cost = a.update(0.1, [], [], BOUNDS)
        assert a.age == pytest.approx(0.1)
        assert cost > 0.0
        assert a.energy == pytest.approx(1.0 - cost)

    def test_update_keeps_position_in_bounds(self, config, rng):
        a = make_agent(config, rng, x=799.9, y=599.9)
        for _ in range(100):
            a.update(0.1, [], [], BOUNDS)
            assert 0.0 <= a.position[0] < 800.0
            assert 0.0 <= a.position[1] < 600.0


# ---------------------------------------------------------------------------
# Eating and death
# ---------------------------------------------------------------------------

class TestEnergy:

    def test_eat_adds_energy_and_fitness(self, config, rng):
        a = make_agent(config, rng, energy=0.5)
        gained = a.eat(0.3)
        assert gained == pytest.approx(0.3)
        assert a.energy == pytest.approx(0.8)
        assert a.fitness == 1.0

    def test_eat_capped(self, config, rng):
        a = make_agent(config, rng, energy=1.4)
        gained = a.eat(0.4)
        assert a.energy == pytest.approx(1.5)
        assert gained == pytest.approx(0.1)
        assert a.fitness == 1.0

    def test_death_threshold(self, config, rng):
        assert not make_agent(config, rng, energy=-0.19).is_dead
        assert make_agent(config, rng, energy=-0.2).is_dead


# ---------------------------------------------------------------------------
# Reproduction
# ---------------------------------------------------------------------------

class TestReproduction:

    def test_eligible_pair(self, config, rng):
        a = make_agent(config, rng)
        assert a.can_reproduce_with(summary(), BOUNDS)

    @pytest.mark.parametrize("kwargs", [
        {"gender": Gender.MALE},
        {"cooldown": 1.0},
        {"energy": 0.69},
        {"position": (140.0, 100.0)},
    ])
    def test_ineligible_partner(self, config, rng, kwargs):
        a = make_agent(config, rng)
        assert not a.can_reproduce_with(summary(**kwargs), BOUNDS)

    def test_own_cooldown_blocks(self, config, rng):
        a = make_agent(config, rng)
        a.reproduction_cooldown = 0.5
        assert not a.can_reproduce_with(summary(), BOUNDS)

    def test_own_energy_blocks(self, config, rng):
        a = make_agent(config, rng, energy=0.6)
        assert not a.can_reproduce_with(summary(), BOUNDS)

    def test_eligible_across_seam(self, config, rng):
        a = make_agent(config, rng, x=790.0, y=300.0)
        assert a.can_reproduce_with(summary(position=(10.0, 300.0)), BOUNDS)

    def test_reproduce_charges_both_parents(self, config, rng):
        a = make_agent(config, rng, gender=Gender.MALE)
        b = make_agent(config, rng, x=130.0, gender=Gender.FEMALE)
        child = a.reproduce_with(b, rng, BOUNDS)
        for parent in (a, b):
            assert parent.energy == pytest.approx(0.8)
            assert parent.reproduction_cooldown == 15.0
            assert parent.children == 1
        assert child.energy == config.energy.birth_energy
        assert child.generation == 1
        assert child.id not in (a.id, b.id)

    def test_child_generation_is_max_plus_one(self, config, rng):
        a = make_agent(config, rng)
        b = make_agent(config, rng, gender=Gender.FEMALE)
        a.generation, b.generation = 2, 5
        assert a.create_offspring(b, rng, BOUNDS).generation == 6

    def test_child_near_midpoint(self, config, rng):
        a = make_agent(config, rng, x=100.0, y=100.0)
        b = make_agent(config, rng, x=130.0, y=100.0, gender=Gender.FEMALE)
        for _ in range(20):
            child = a.create_offspring(b, rng, BOUNDS)
            d = toroidal_distance(115.0, 100.0, *child.position, *BOUNDS)
            assert d <= math.hypot(10.0, 10.0) + 1e-9

    def test_child_midpoint_across_seam(self, config, rng):
        config.reproduction.child_jitter = 0.0
        a = make_agent(config, rng, x=790.0, y=300.0)
        b = make_agent(config, rng, x=10.0, y=300.0, gender=Gender.FEMALE)
        child = a.create_offspring(b, rng, BOUNDS)
        assert toroidal_distance(0.0, 300.0, *child.position, *BOUNDS) == pytest.approx(0.0, abs=1e-9)

    def test_child_genome_is_single_point_crossover(self, config, rng):
        config.reproduction.mutation_rate = 0.0
        a = make_agent(config, rng)
        b = make_agent(config, rng, gender=Gender.FEMALE)
        for _ in range(10):
            g = a.create_offspring(b, rng, BOUNDS).genome
            from_a = g == a.genome
            from_b = g == b.genome
            assert np.all(from_a | from_b)
            # A prefix from a, then the rest from b
            first_b_only = np.flatnonzero(from_b & ~from_a)
            if len(first_b_only):
                assert np.all(from_b[first_b_only[0]:])

    def test_child_genome_mirror_matches_brain(self, config, rng):
        a = make_agent(config, rng)
        b = make_agent(config, rng, gender=Gender.FEMALE)
        child = a.create_offspring(b, rng)
        assert np.array_equal(child.genome, child.brain.extract_genome())

    def test_create_offspring_is_free(self, config, rng):
        a = make_agent(config, rng)
        b = make_agent(config, rng, gender=Gender.FEMALE)
        a.create_offspring(b, rng, BOUNDS)
        assert a.energy == 1.0 and b.energy == 1.0
        assert a.children == 0 and b.children == 0


# ---------------------------------------------------------------------------
# Representation
# ---------------------------------------------------------------------------

class TestRepresentation:

    def test_to_dict(self, config, rng):
        d = make_agent(config, rng).to_dict()
        for key in ("id", "x", "y", "energy", "age", "fitness", "gender",
                    "behavior_state", "generation", "children"):
            assert key in d
        assert d["gender"] == "male"

    def test_summary(self, config, rng):
        a = make_agent(config, rng)
        a.reproduction_cooldown = 2.0
        s = a.summary(7)
        assert s.index == 7
        assert s.position == a.position
        assert s.reproduction_cooldown == 2.0
        assert s.energy == a.energy
