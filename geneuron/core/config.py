"""
Configuration system for the Geneuron simulator.

Provides a hierarchical dataclass-based config with JSON serialization,
validation, and sensible defaults for every tunable constant of the engine
(world size, neural shape, physics, behavior, sensing, energy,
reproduction, food field, population bounds, run settings).
"""

from __future__ import annotations

import json
import warnings
from copy import deepcopy
from dataclasses import dataclass, field, fields, asdict
from pathlib import Path
from typing import Any


# ---------------------------------------------------------------------------
# Sub-config dataclasses (grouped by domain)
# ---------------------------------------------------------------------------

@dataclass
class WorldConfig:
    """Toroidal plane dimensions and seed."""
    width: float = 800.0
    height: float = 600.0
    seed: int = 42

    def validate(self) -> list[str]:
        errors = []
        if self.width <= 0:
            errors.append(f"world.width must be > 0, got {self.width}")
        if self.height <= 0:
            errors.append(f"world.height must be > 0, got {self.height}")
        return errors


@dataclass
class NeuralConfig:
    """Shape and mutation parameters of the creature brain."""
    input_size: int = 9
    output_size: int = 2
    hidden_size: int = 8              # 0 = no hidden layer
    weight_range: list[float] = field(default_factory=lambda: [-1.0, 1.0])
    mutation_amount: float = 0.2      # max perturbation per mutated gene

    def validate(self) -> list[str]:
        errors = []
        if self.input_size != 9:
            errors.append(f"neural.input_size must be 9 (sensor vector length), got {self.input_size}")
        if self.output_size < 2:
            errors.append(f"neural.output_size must be >= 2, got {self.output_size}")
        if self.hidden_size < 0:
            errors.append(f"neural.hidden_size must be >= 0, got {self.hidden_size}")
        if len(self.weight_range) != 2 or self.weight_range[0] >= self.weight_range[1]:
            errors.append("neural.weight_range must be [low, high] with low < high")
        elif self.mutation_amount >= self.weight_range[1] - self.weight_range[0]:
            errors.append("neural.mutation_amount must be smaller than the weight range width")
        if self.mutation_amount <= 0:
            errors.append(f"neural.mutation_amount must be > 0, got {self.mutation_amount}")
        return errors


@dataclass
class PhysicsConfig:
    """Kinematics, inertia and movement energy costs."""
    drag: float = 0.98                 # velocity multiplier per integration step
    min_inertia: float = 0.5           # inertia at full energy (responsive)
    max_inertia: float = 0.9           # inertia at zero energy (sluggish)
    max_speed: float = 200.0           # speed cap at full energy
    low_energy_floor: float = 0.3      # fraction of caps kept at zero energy
    rotation_decay: float = 0.8        # rotation momentum multiplier per step
    max_rotation_momentum: float = 0.3 # radians per step at full energy

    # Energy cost tiers (per second)
    base_metabolism: float = 0.008
    idle_speed: float = 5.0
    cruise_speed: float = 80.0
    k_linear: float = 0.0001
    k_quadratic: float = 0.000002
    k_rotation: float = 0.005

    # Creature-creature collisions (off by default)
    collisions: bool = False
    collision_radius: float = 5.0     # body radius; contact below twice this
    collision_damping: float = 0.8    # speed kept after swapping velocities
    collision_jitter: float = 0.2     # width of the random velocity kick

    def validate(self) -> list[str]:
        errors = []
        if not (0.0 < self.drag <= 1.0):
            errors.append(f"physics.drag must be in (0, 1], got {self.drag}")
        if not (0.0 <= self.min_inertia <= self.max_inertia < 1.0):
            errors.append("physics: need 0 <= min_inertia <= max_inertia < 1")
        if self.max_speed <= 0:
            errors.append(f"physics.max_speed must be > 0, got {self.max_speed}")
        if not (0.0 <= self.low_energy_floor <= 1.0):
            errors.append(f"physics.low_energy_floor must be in [0, 1], got {self.low_energy_floor}")
        if not (0.0 <= self.rotation_decay <= 1.0):
            errors.append(f"physics.rotation_decay must be in [0, 1], got {self.rotation_decay}")
        if self.max_rotation_momentum <= 0:
            errors.append(f"physics.max_rotation_momentum must be > 0, got {self.max_rotation_momentum}")
        if not (0.0 <= self.idle_speed <= self.cruise_speed):
            errors.append("physics: need 0 <= idle_speed <= cruise_speed")
        for name in ("base_metabolism", "k_linear", "k_quadratic", "k_rotation"):
            if getattr(self, name) < 0:
                errors.append(f"physics.{name} must be >= 0, got {getattr(self, name)}")
        if self.collision_radius < 0:
            errors.append(f"physics.collision_radius must be >= 0, got {self.collision_radius}")
        if not (0.0 <= self.collision_damping <= 1.0):
            errors.append(f"physics.collision_damping must be in [0, 1], got {self.collision_damping}")
        if self.collision_jitter < 0:
            errors.append(f"physics.collision_jitter must be >= 0, got {self.collision_jitter}")
        return errors


@dataclass
class BehaviorConfig:
    """Behavior state machine thresholds and movement scaling."""
    interval: float = 0.5               # seconds between state re-evaluations
    feeding_energy: float = 0.3         # below: always Feeding
    resting_energy: float = 0.5         # below (with company): Resting
    min_group_size: int = 2             # same-gender agents needed for Resting/Socializing
    critical_energy: float = 0.1
    base_speed: float = 150.0
    max_turn_rate: float = 0.15         # radians of rotation force per step
    focus_weight: float = 0.5           # distance re-weighting for the focused target
    reference_distance: float = 200.0   # distance normalization
    reference_speed: float = 200.0      # speed normalization
    speed_multipliers: dict[str, float] = field(default_factory=lambda: {
        "exploring": 1.0,
        "feeding": 1.2,
        "socializing": 0.6,
        "reproducing": 1.4,
        "resting": 0.2,
    })
    turn_multipliers: dict[str, float] = field(default_factory=lambda: {
        "exploring": 1.0,
        "feeding": 1.3,
        "socializing": 0.8,
        "reproducing": 1.2,
        "resting": 0.4,
    })

    def validate(self) -> list[str]:
        errors = []
        if self.interval <= 0:
            errors.append(f"behavior.interval must be > 0, got {self.interval}")
        if not (0.0 <= self.critical_energy <= self.feeding_energy <= self.resting_energy):
            errors.append("behavior: need 0 <= critical_energy <= feeding_energy <= resting_energy")
        if self.min_group_size < 1:
            errors.append(f"behavior.min_group_size must be >= 1, got {self.min_group_size}")
        if self.base_speed <= 0:
            errors.append(f"behavior.base_speed must be > 0, got {self.base_speed}")
        if self.reference_distance <= 0 or self.reference_speed <= 0:
            errors.append("behavior.reference_distance and reference_speed must be > 0")
        if not (0.0 < self.focus_weight <= 1.0):
            errors.append(f"behavior.focus_weight must be in (0, 1], got {self.focus_weight}")
        states = {"exploring", "feeding", "socializing", "reproducing", "resting"}
        for name, table in [("speed_multipliers", self.speed_multipliers),
                            ("turn_multipliers", self.turn_multipliers)]:
            missing = states - set(table)
            if missing:
                errors.append(f"behavior.{name} missing states: {sorted(missing)}")
            if any(v < 0 for v in table.values()):
                errors.append(f"behavior.{name} values must be >= 0")
        return errors


@dataclass
class SensorConfig:
    """Perception and interaction radii."""
    agent_radius: float = 100.0   # nearby agents
    food_radius: float = 200.0    # nearby food
    eating_radius: float = 10.0

    def validate(self) -> list[str]:
        errors = []
        if self.agent_radius <= 0 or self.food_radius <= 0:
            errors.append("sensors.agent_radius and food_radius must be > 0")
        if not (0.0 < self.eating_radius <= self.food_radius):
            errors.append("sensors.eating_radius must be in (0, food_radius]")
        return errors


@dataclass
class EnergyConfig:
    """Energy limits."""
    birth_energy: float = 1.0
    max_energy: float = 1.5
    death_threshold: float = -0.2

    def validate(self) -> list[str]:
        errors = []
        if not (self.death_threshold < self.birth_energy <= self.max_energy):
            errors.append("energy: need death_threshold < birth_energy <= max_energy")
        return errors


@dataclass
class ReproductionConfig:
    """Mating eligibility, cost and inheritance."""
    min_energy: float = 0.7
    cost: float = 0.2
    cooldown: float = 15.0
    eligibility_radius: float = 40.0
    mutation_rate: float = 0.1
    child_jitter: float = 10.0

    def validate(self) -> list[str]:
        errors = []
        if self.cost < 0:
            errors.append(f"reproduction.cost must be >= 0, got {self.cost}")
        if self.cooldown < 0:
            errors.append(f"reproduction.cooldown must be >= 0, got {self.cooldown}")
        if self.eligibility_radius <= 0:
            errors.append(f"reproduction.eligibility_radius must be > 0, got {self.eligibility_radius}")
        if not (0.0 <= self.mutation_rate <= 1.0):
            errors.append(f"reproduction.mutation_rate must be in [0, 1], got {self.mutation_rate}")
        if self.child_jitter < 0:
            errors.append(f"reproduction.child_jitter must be >= 0, got {self.child_jitter}")
        return errors


@dataclass
class FoodConfig:
    """Food field spawning parameters."""
    initial_count: int = 50
    min_count: int = 30
    max_count: int = 150
    energy_min: float = 0.2
    energy_max: float = 0.4
    cluster_chance: float = 0.1   # per field update
    cluster_radius: float = 50.0

    def validate(self) -> list[str]:
        errors = []
        if not (0 <= self.min_count <= self.max_count):
            errors.append("food: need 0 <= min_count <= max_count")
        if not (0 <= self.initial_count <= self.max_count):
            errors.append("food: need 0 <= initial_count <= max_count")
        if not (0.0 < self.energy_min <= self.energy_max):
            errors.append("food: need 0 < energy_min <= energy_max")
        if not (0.0 <= self.cluster_chance <= 1.0):
            errors.append(f"food.cluster_chance must be in [0, 1], got {self.cluster_chance}")
        if self.cluster_radius < 0:
            errors.append(f"food.cluster_radius must be >= 0, got {self.cluster_radius}")
        return errors


@dataclass
class PopulationConfig:
    """Population size and bounds."""
    initial_count: int = 50
    floor: int = 10
    ceiling: int = 300
    repopulation_interval: float = 2.0   # seconds between floor injections
    repopulation_batch: int = 5
    spawn_spread: float = 50.0           # offset around an existing agent

    def validate(self) -> list[str]:
        errors = []
        if not (0 <= self.floor <= self.ceiling):
            errors.append("population: need 0 <= floor <= ceiling")
        if not (0 <= self.initial_count <= self.ceiling):
            errors.append("population: need 0 <= initial_count <= ceiling")
        if self.repopulation_interval < 0:
            errors.append(f"population.repopulation_interval must be >= 0, got {self.repopulation_interval}")
        if self.repopulation_batch < 1:
            errors.append(f"population.repopulation_batch must be >= 1, got {self.repopulation_batch}")
        return errors


@dataclass
class RunConfig:
    """Headless run and output settings."""
    generation_interval: float = 60.0   # seconds of simulated time per generation
    dt: float = 1.0 / 30.0
    duration: float = 600.0
    output_dir: str = "runs"

    def validate(self) -> list[str]:
        errors = []
        if self.generation_interval <= 0:
            errors.append(f"run.generation_interval must be > 0, got {self.generation_interval}")
        if self.dt <= 0:
            errors.append(f"run.dt must be > 0, got {self.dt}")
        if self.duration < 0:
            errors.append(f"run.duration must be >= 0, got {self.duration}")
        return errors


# ---------------------------------------------------------------------------
# Top-level config
# ---------------------------------------------------------------------------

@dataclass
class SimConfig:
    """
    Top-level simulation configuration.

    All parameters are adjustable. Nested dataclasses group related settings.
    Load from JSON with `load_config()`, validate with `validate()`.
    """
    world: WorldConfig = field(default_factory=WorldConfig)
    neural: NeuralConfig = field(default_factory=NeuralConfig)
    physics: PhysicsConfig = field(default_factory=PhysicsConfig)
    behavior: BehaviorConfig = field(default_factory=BehaviorConfig)
    sensors: SensorConfig = field(default_factory=SensorConfig)
    energy: EnergyConfig = field(default_factory=EnergyConfig)
    reproduction: ReproductionConfig = field(default_factory=ReproductionConfig)
    food: FoodConfig = field(default_factory=FoodConfig)
    population: PopulationConfig = field(default_factory=PopulationConfig)
    run: RunConfig = field(default_factory=RunConfig)

    def validate(self) -> list[str]:
        """Validate all config sections. Returns list of error messages (empty = valid)."""
        errors = []
        for f in fields(self):
            sub = getattr(self, f.name)
            if hasattr(sub, "validate"):
                errors.extend(sub.validate())
        if self.reproduction.eligibility_radius > self.sensors.agent_radius:
            errors.append("reproduction.eligibility_radius must be <= sensors.agent_radius")
        if self.population.floor > 0 and self.population.repopulation_batch < 1:
            errors.append("population.repopulation_batch must be >= 1 when floor > 0")
        return errors

    def to_dict(self) -> dict[str, Any]:
        """Convert to nested dict for JSON serialization."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SimConfig:
        """Create SimConfig from nested dict, merging with defaults."""
        config = cls()
        _merge_into_dataclass(config, data)
        return config

    def copy(self) -> SimConfig:
        """Deep copy of this config."""
        return deepcopy(self)


# ---------------------------------------------------------------------------
# JSON I/O helpers
# ---------------------------------------------------------------------------

def _merge_into_dataclass(target: Any, source: dict[str, Any]) -> None:
    """
    Recursively merge a dict into a dataclass instance.
    Unknown keys emit a warning but don't raise.
    """
    if not isinstance(source, dict):
        return

    known_fields = {f.name for f in fields(target)}
    for key, value in source.items():
        if key not in known_fields:
            warnings.warn(
                f"Unknown config key '{key}' in section {type(target).__name__} - ignored.",
                UserWarning,
                stacklevel=3,
            )
            continue

        current = getattr(target, key)

        # If the current field is a dataclass, recurse
        if hasattr(current, "__dataclass_fields__") and isinstance(value, dict):
            _merge_into_dataclass(current, value)
        elif isinstance(current, dict) and isinstance(value, dict):
            current.update(value)
        else:
            setattr(target, key, value)


def load_config(path: str | Path) -> SimConfig:
    """
    Load config from a JSON file. Missing fields use defaults.

    Args:
        path: Path to JSON config file.

    Returns:
        Validated SimConfig instance.

    Raises:
        FileNotFoundError: If path doesn't exist.
        json.JSONDecodeError: If JSON is malformed.
        ValueError: If config values are invalid.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)

    config = SimConfig.from_dict(data)

    errors = config.validate()
    if errors:
        msg = "Invalid configuration:\n" + "\n".join(f"  - {e}" for e in errors)
        raise ValueError(msg)

    return config


def save_config(config: SimConfig, path: str | Path) -> None:
    """Save config to JSON file."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(config.to_dict(), f, indent=2, ensure_ascii=False)


def get_default_config() -> SimConfig:
    """
    Return a fresh default config (all defaults, validated).

    Raises:
        ValueError: If the built-in defaults fail validation.
    """
    config = SimConfig()
    errors = config.validate()
    if errors:
        raise ValueError("Default config is invalid:\n" + "\n".join(f"  - {e}" for e in errors))
    return config


def apply_param_override(config: SimConfig, dotted_key: str, value: Any) -> None:
    """
    Apply a single parameter override using dot notation.

    Example:
        apply_param_override(config, "population.floor", 20)
        apply_param_override(config, "reproduction.cooldown", 10.0)

    Args:
        config: SimConfig to modify in-place.
        dotted_key: Dot-separated path like "world.width" or "sensors.eating_radius"
        value: New value to set.

    Raises:
        KeyError: If the path doesn't exist.
    """
    parts = dotted_key.split(".")
    obj = config
    for part in parts[:-1]:
        if not hasattr(obj, part):
            raise KeyError(f"Config path '{dotted_key}' invalid: '{part}' not found in {type(obj).__name__}")
        obj = getattr(obj, part)

    final_key = parts[-1]
    if not hasattr(obj, final_key):
        raise KeyError(f"Config path '{dotted_key}' invalid: '{final_key}' not found in {type(obj).__name__}")

    setattr(obj, final_key, value)
