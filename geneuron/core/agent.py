"""
Creature (Agent) for the Geneuron simulator.

Each creature owns a neural controller (its brain) and a physics body.
Every tick it senses nearby food and creatures, feeds a normalized sensor
vector through the brain, and turns the outputs into a steering force.

A small behavior state machine, re-evaluated on a timer, scales movement
and re-weights the senses. Creatures have a binary gender and reproduce
sexually: the child's genome is a single-point crossover of both parents
followed by mutation.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import NamedTuple, Optional, Sequence

import numpy as np
from numpy.typing import NDArray

from geneuron.core.config import SimConfig
from geneuron.core.neural import FeedForwardNetwork, NeuralController
from geneuron.core.physics import PhysicsState
from geneuron.utils.encoding import clamp, single_point_crossover
from geneuron.utils.spatial import TWO_PI, random_point_near, toroidal_midpoint


# Unique ID counter for agents
_next_agent_id: int = 0


def _get_next_id() -> int:
    """Generate a globally unique agent ID."""
    global _next_agent_id
    aid = _next_agent_id
    _next_agent_id += 1
    return aid


def reset_agent_id_counter() -> None:
    """Reset the ID counter (useful for tests)."""
    global _next_agent_id
    _next_agent_id = 0


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class Gender(Enum):
    MALE = "male"
    FEMALE = "female"

    @property
    def opposite(self) -> Gender:
        return Gender.FEMALE if self is Gender.MALE else Gender.MALE

    @property
    def color(self) -> tuple[int, int, int]:
        """Body color hint for renderers."""
        return (0, 121, 241) if self is Gender.MALE else (255, 109, 194)


class BehaviorState(Enum):
    """Discrete behavior modes. Values double as config table keys."""
    EXPLORING = "exploring"
    FEEDING = "feeding"
    SOCIALIZING = "socializing"
    REPRODUCING = "reproducing"
    RESTING = "resting"

    @property
    def color(self) -> tuple[int, int, int]:
        """Mode ring color hint for renderers."""
        return _STATE_COLORS[self]

    @property
    def marker(self) -> str:
        """Single-character marker for text renderers."""
        return _STATE_MARKERS[self]


_STATE_COLORS = {
    BehaviorState.EXPLORING: (255, 255, 255),
    BehaviorState.FEEDING: (253, 249, 0),
    BehaviorState.SOCIALIZING: (102, 191, 255),
    BehaviorState.REPRODUCING: (0, 228, 48),
    BehaviorState.RESTING: (130, 130, 130),
}

_STATE_MARKERS = {
    BehaviorState.EXPLORING: "E",
    BehaviorState.FEEDING: "F",
    BehaviorState.SOCIALIZING: "S",
    BehaviorState.REPRODUCING: "R",
    BehaviorState.RESTING: "Z",
}


# ---------------------------------------------------------------------------
# Perception records
# ---------------------------------------------------------------------------

class AgentSummary(NamedTuple):
    """
    Read-only view of another creature, taken before anyone moves in a tick.

    `index` is the creature's position in the simulation's list and is only
    valid within the tick that produced the summary.
    """
    index: int
    position: tuple[float, float]
    gender: Gender
    reproduction_cooldown: float
    energy: float
    fitness: float = 0.0


@dataclass
class Perception:
    """Raw (unnormalized) results of the latest `sense` call."""
    food_distance: Optional[float] = None
    food_angle: float = 0.0
    mate_distance: Optional[float] = None
    mate_angle: float = 0.0
    peer_distance: Optional[float] = None
    peer_angle: float = 0.0
    food_count: int = 0
    mate_count: int = 0
    peer_count: int = 0

    @property
    def food_near(self) -> bool:
        return self.food_count > 0

    @property
    def mate_near(self) -> bool:
        return self.mate_count > 0


SENSOR_SIZE = 9


# ---------------------------------------------------------------------------
# Agent
# ---------------------------------------------------------------------------

class Agent:
    """
    A creature in the simulation.

    Attributes:
        id: Unique identifier (stable across ticks, unlike list indices).
        physics: Kinematic state and energy.
        brain: Neural controller.
        gender: MALE or FEMALE.
        age: Seconds lived.
        fitness: Number of food items eaten.
        reproduction_cooldown: Seconds until mating is allowed again.
        behavior_state: Current behavior mode.
        behavior_timer: Seconds since the last state evaluation.
        genome: Cached copy of the brain's genome.
        generation: Lineage depth (0 for random founders).
        children: Number of offspring produced.
        perception: Result of the latest sense call.
    """

    __slots__ = (
        "id", "physics", "brain", "gender", "age", "fitness",
        "reproduction_cooldown", "behavior_state", "behavior_timer",
        "genome", "generation", "children", "perception", "_config",
    )

    def __init__(
        self,
        physics: PhysicsState,
        brain: NeuralController,
        gender: Gender,
        config: SimConfig,
        generation: int = 0,
    ):
        """
        Create an agent.

        Args:
            physics: Body (position, energy) for this agent.
            brain: Neural controller; its input size must equal SENSOR_SIZE.
            gender: MALE or FEMALE.
            config: Simulation config (thresholds, multipliers, radii).
            generation: Lineage depth.
        """
        if brain.input_size != SENSOR_SIZE:
            raise ValueError(f"Brain must take {SENSOR_SIZE} inputs, got {brain.input_size}")
        self.id = _get_next_id()
        self.physics = physics
        self.brain = brain
        self.gender = gender
        self.age = 0.0
        self.fitness = 0.0
        self.reproduction_cooldown = 0.0
        self.behavior_state = BehaviorState.EXPLORING
        self.behavior_timer = 0.0
        self.genome = brain.extract_genome()
        self.generation = generation
        self.children = 0
        self.perception = Perception()
        self._config = config

    @classmethod
    def create_random(
        cls,
        x: float,
        y: float,
        config: SimConfig,
        rng: np.random.Generator,
        generation: int = 0,
    ) -> Agent:
        """Create an agent with a random brain, gender and heading."""
        n = config.neural
        brain = FeedForwardNetwork(
            input_size=n.input_size,
            output_size=n.output_size,
            hidden_size=n.hidden_size,
            rng=rng,
            weight_range=(n.weight_range[0], n.weight_range[1]),
            mutation_amount=n.mutation_amount,
        )
        physics = PhysicsState(
            x, y,
            rotation=float(rng.uniform(0.0, TWO_PI)),
            energy=config.energy.birth_energy,
            config=config.physics,
        )
        gender = Gender.MALE if rng.random() < 0.5 else Gender.FEMALE
        return cls(physics, brain, gender, config, generation=generation)

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def position(self) -> tuple[float, float]:
        return (self.physics.x, self.physics.y)

    @property
    def energy(self) -> float:
        return self.physics.energy

    @energy.setter
    def energy(self, value: float) -> None:
        self.physics.energy = float(value)

    @property
    def velocity(self) -> tuple[float, float]:
        return (float(self.physics.velocity[0]), float(self.physics.velocity[1]))

    @property
    def rotation(self) -> float:
        return self.physics.rotation

    @property
    def is_dead(self) -> bool:
        return self.physics.energy <= self._config.energy.death_threshold

    def summary(self, index: int) -> AgentSummary:
        """Snapshot of this agent as seen by others during a tick."""
        return AgentSummary(
            index=index,
            position=self.position,
            gender=self.gender,
            reproduction_cooldown=self.reproduction_cooldown,
            energy=self.physics.energy,
            fitness=self.fitness,
        )

    def set_genome(self, values: Sequence[float], strict: bool = True) -> None:
        """Write a genome into the brain and refresh the cached mirror."""
        self.brain.apply_genome(values, strict=strict)
        self.genome = self.brain.extract_genome()

    # ------------------------------------------------------------------
    # Sensing
    # ------------------------------------------------------------------

    def _is_eligible_mate(self, other: AgentSummary) -> bool:
        return (
            other.gender != self.gender
            and other.reproduction_cooldown <= 0.0
            and other.energy >= self._config.reproduction.min_energy
        )

    def sense(
        self,
        nearby_food: Sequence[Sequence[float]],
        nearby_agents: Sequence[AgentSummary],
        bounds: tuple[float, float],
    ) -> NDArray[np.float64]:
        """
        Build the normalized sensor vector.

        Layout: [energy, speed, rotation, food_dist, food_angle,
        mate_dist, mate_angle, peer_dist, peer_angle]. Distances are in
        [0, 1] (1.0 when nothing is sensed), angles in [-1, 1] (0.0 when
        nothing is sensed). The distance of the target the current behavior
        focuses on is scaled down so it appears closer.

        Args:
            nearby_food: Food positions within sensing range.
            nearby_agents: Summaries of other agents within sensing range.
            bounds: (width, height) of the plane.

        Returns:
            Array of SENSOR_SIZE inputs. Also stores `self.perception`.
        """
        b = self._config.behavior
        p = Perception()

        best = math.inf
        for pos in nearby_food:
            dist, angle = self.physics.direction_to(pos, bounds)
            if dist < best:
                best, p.food_distance, p.food_angle = dist, dist, angle
        p.food_count = len(nearby_food)

        best_mate = math.inf
        best_peer = math.inf
        for other in nearby_agents:
            if other.gender == self.gender:
                p.peer_count += 1
                dist, angle = self.physics.direction_to(other.position, bounds)
                if dist < best_peer:
                    best_peer, p.peer_distance, p.peer_angle = dist, dist, angle
            elif self._is_eligible_mate(other):
                p.mate_count += 1
                dist, angle = self.physics.direction_to(other.position, bounds)
                if dist < best_mate:
                    best_mate, p.mate_distance, p.mate_angle = dist, dist, angle

        self.perception = p

        state = self.behavior_state
        food_w = b.focus_weight if state is BehaviorState.FEEDING else 1.0
        mate_w = b.focus_weight if state is BehaviorState.REPRODUCING else 1.0
        peer_w = b.focus_weight if state in (BehaviorState.SOCIALIZING, BehaviorState.RESTING) else 1.0

        def encode(distance: Optional[float], angle: float, weight: float) -> tuple[float, float]:
            if distance is None:
                return 1.0, 0.0
            return clamp(distance / b.reference_distance * weight, 0.0, 1.0), angle / math.pi

        food_d, food_a = encode(p.food_distance, p.food_angle, food_w)
        mate_d, mate_a = encode(p.mate_distance, p.mate_angle, mate_w)
        peer_d, peer_a = encode(p.peer_distance, p.peer_angle, peer_w)

        return np.array([
            self.physics.energy,
            clamp(self.physics.speed / b.reference_speed, 0.0, 1.0),
            self.physics.rotation / TWO_PI,
            food_d, food_a,
            mate_d, mate_a,
            peer_d, peer_a,
        ], dtype=np.float64)

    # ------------------------------------------------------------------
    # Behavior state machine
    # ------------------------------------------------------------------

    def evaluate_behavior(self, perception: Optional[Perception] = None) -> BehaviorState:
        """
        Pick the behavior state from the priority table (first match wins).

          1. energy < feeding_energy                         -> FEEDING
          2. energy >= reproduction.min_energy and mate near  -> REPRODUCING
          3. energy < resting_energy and group near           -> RESTING
          4. food near                                        -> FEEDING
          5. group near                                       -> SOCIALIZING
          6. otherwise                                        -> EXPLORING
        """
        if perception is None:
            perception = self.perception
        b = self._config.behavior
        energy = self.physics.energy
        group_near = perception.peer_count >= b.min_group_size

        if energy < b.feeding_energy:
            return BehaviorState.FEEDING
        if energy >= self._config.reproduction.min_energy and perception.mate_near:
            return BehaviorState.REPRODUCING
        if energy < b.resting_energy and group_near:
            return BehaviorState.RESTING
        if perception.food_near:
            return BehaviorState.FEEDING
        if group_near:
            return BehaviorState.SOCIALIZING
        return BehaviorState.EXPLORING

    def update_behavior_state(self, dt: float) -> bool:
        """
        Advance the behavior timer and re-evaluate when it expires.

        Returns:
            True if the state was re-evaluated this call.
        """
        interval = self._config.behavior.interval
        self.behavior_timer += dt
        if self.behavior_timer < interval:
            return False
        # Keep the overshoot so re-evaluation stays on the interval grid
        self.behavior_timer %= interval
        self.behavior_state = self.evaluate_behavior()
        return True

    # ------------------------------------------------------------------
    # Decision
    # ------------------------------------------------------------------

    def energy_multiplier(self) -> float:
        """Movement scale from energy: critical agents crawl."""
        b = self._config.behavior
        energy = self.physics.energy
        if energy < b.critical_energy:
            return 0.3
        if energy < b.feeding_energy:
            return 0.7
        return 1.0

    def decide(self, inputs: Sequence[float]) -> NDArray[np.float64]:
        """
        Run the brain and steer the body.

        Output 0 sets the forward speed along the current heading, output 1
        the turn direction (0.5 = straight). Both are scaled by the behavior
        state and by energy.

        Returns:
            Raw brain outputs.
        """
        b = self._config.behavior
        outputs = self.brain.process(inputs)
        key = self.behavior_state.value
        energy_mult = self.energy_multiplier()

        speed = float(outputs[0]) * b.base_speed * b.speed_multipliers[key] * energy_mult
        turn = (2.0 * float(outputs[1]) - 1.0) * b.max_turn_rate * b.turn_multipliers[key] * energy_mult

        heading = self.physics.rotation
        force = (math.cos(heading) * speed, math.sin(heading) * speed)
        self.physics.apply_force(force, turn, self.physics.energy)
        return outputs

    def update(
        self,
        dt: float,
        nearby_food: Sequence[Sequence[float]],
        nearby_agents: Sequence[AgentSummary],
        bounds: tuple[float, float],
    ) -> float:
        """
        One tick of the sense -> decide -> move pipeline.

        Args:
            dt: Time step in seconds.
            nearby_food: Food positions within sensing range.
            nearby_agents: Summaries of other agents within sensing range.
            bounds: (width, height) of the plane.

        Returns:
            Energy spent this tick.
        """
        self.age += dt
        inputs = self.sense(nearby_food, nearby_agents, bounds)
        self.update_behavior_state(dt)
        self.decide(inputs)
        self.physics.integrate(dt, bounds)
        cost = self.physics.energy_cost(dt)
        self.physics.energy -= cost
        return cost

    # ------------------------------------------------------------------
    # Feeding
    # ------------------------------------------------------------------

    def eat(self, food_value: float) -> float:
        """
        Gain energy from one food item (capped at max_energy).

        Returns:
            Energy actually gained.
        """
        old = self.physics.energy
        self.physics.energy = min(old + food_value, self._config.energy.max_energy)
        self.fitness += 1.0
        return self.physics.energy - old

    # ------------------------------------------------------------------
    # Reproduction
    # ------------------------------------------------------------------

    def can_reproduce_with(
        self,
        other: AgentSummary,
        bounds: tuple[float, float],
    ) -> bool:
        """
        Pure mating check against another agent's summary.

        True iff genders differ, both cooldowns have expired, both energies
        reach reproduction.min_energy, and the toroidal distance is below
        the eligibility radius.
        """
        r = self._config.reproduction
        return (
            self.gender != other.gender
            and self.reproduction_cooldown <= 0.0
            and other.reproduction_cooldown <= 0.0
            and self.physics.energy >= r.min_energy
            and other.energy >= r.min_energy
            and self.physics.distance_to(other.position, bounds) < r.eligibility_radius
        )

    def pay_reproduction_cost(self) -> None:
        """Start the refractory period and deduct the mating energy cost."""
        r = self._config.reproduction
        self.reproduction_cooldown = r.cooldown
        self.physics.energy -= r.cost
        self.children += 1

    def create_offspring(
        self,
        other: Agent,
        rng: np.random.Generator,
        bounds: Optional[tuple[float, float]] = None,
    ) -> Agent:
        """
        Build a child without charging either parent.

        Offspring:
          - Genome: single-point crossover of both parents, then mutation
          - Energy: birth_energy
          - Position: toroidal midpoint of the parents +/- child_jitter
          - Generation: max(parent generations) + 1

        Args:
            other: Second parent.
            rng: Random generator.
            bounds: (width, height) of the plane. Defaults to the configured
                    world size.

        Returns:
            A new Agent.
        """
        r = self._config.reproduction
        if bounds is None:
            bounds = (self._config.world.width, self._config.world.height)
        width, height = bounds

        genome = single_point_crossover(self.genome, other.genome, rng)
        mx, my = toroidal_midpoint(*self.position, *other.position, width, height)
        cx, cy = random_point_near(mx, my, r.child_jitter, width, height, rng)

        child = Agent.create_random(
            cx, cy, self._config, rng,
            generation=max(self.generation, other.generation) + 1,
        )
        child.brain.apply_genome(genome, strict=True)
        child.brain.mutate(r.mutation_rate, rng)
        child.genome = child.brain.extract_genome()
        return child

    def reproduce_with(
        self,
        other: Agent,
        rng: np.random.Generator,
        bounds: Optional[tuple[float, float]] = None,
    ) -> Agent:
        """Create a child with `other`; both parents pay the mating cost."""
        child = self.create_offspring(other, rng, bounds)
        self.pay_reproduction_cost()
        other.pay_reproduction_cost()
        return child

    # ------------------------------------------------------------------
    # Representation
    # ------------------------------------------------------------------

    def __repr__(self) -> str:
        return (
            f"Agent(id={self.id}, pos=({self.physics.x:.1f},{self.physics.y:.1f}), "
            f"energy={self.physics.energy:.3f}, age={self.age:.1f}, "
            f"fitness={self.fitness:.0f}, gender={self.gender.value}, "
            f"state={self.behavior_state.value})"
        )

    def to_dict(self) -> dict:
        """Plain-data view of the agent for renderers and metrics."""
        return {
            "id": self.id,
            "x": self.physics.x,
            "y": self.physics.y,
            "vx": float(self.physics.velocity[0]),
            "vy": float(self.physics.velocity[1]),
            "rotation": self.physics.rotation,
            "energy": self.physics.energy,
            "age": self.age,
            "fitness": self.fitness,
            "gender": self.gender.value,
            "behavior_state": self.behavior_state.value,
            "state_color": self.behavior_state.color,
            "color": self.gender.color,
            "generation": self.generation,
            "children": self.children,
            "reproduction_cooldown": self.reproduction_cooldown,
        }
