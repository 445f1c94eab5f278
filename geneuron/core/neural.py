"""
Neural controller (brain) for Geneuron creatures.

A small feedforward network maps the sensor vector to movement commands.
Its parameters form a flat real-valued genome that is mutated, recombined
and copied between generations.

Activation contract: the optional hidden layer uses tanh, the output layer
uses the logistic sigmoid, so every output lies in (0, 1). Agent code scales
output 0 into a forward speed and maps output 1 onto [-1, 1] for turning.
"""

from __future__ import annotations

import warnings
from typing import Optional, Protocol, Sequence, runtime_checkable

import numpy as np
from numpy.typing import NDArray

from geneuron.utils.encoding import flatten_params, genome_length, unflatten_into


class InvalidGenomeLength(ValueError):
    """Raised by strict genome application when the length doesn't match."""


@runtime_checkable
class NeuralController(Protocol):
    """Capability contract every brain implementation must satisfy."""

    input_size: int
    output_size: int

    @property
    def genome_length(self) -> int: ...

    def process(self, inputs: Sequence[float]) -> NDArray[np.float64]: ...

    def mutate(self, rate: float, rng: np.random.Generator) -> int: ...

    def crossover(self, other: NeuralController, rng: np.random.Generator) -> NeuralController: ...

    def extract_genome(self) -> NDArray[np.float64]: ...

    def apply_genome(self, values: Sequence[float], strict: bool = False) -> None: ...


def _sigmoid(z: NDArray[np.float64]) -> NDArray[np.float64]:
    # tanh form never overflows
    return 0.5 * (1.0 + np.tanh(0.5 * z))


class FeedForwardNetwork:
    """
    Fully connected feedforward network with zero or one hidden layer.

    Genome layout (weights then biases):
      - no hidden layer:  W_out (out x in), b_out (out)
      - hidden layer:     W_hidden (hid x in), W_out (out x hid), b_hidden (hid), b_out (out)

    Attributes:
        input_size: Length of the input vector.
        output_size: Length of the output vector.
        hidden_size: Hidden units (0 = direct input -> output).
        weight_range: (low, high) bounds every parameter is kept within.
        mutation_amount: Maximum absolute perturbation per mutated parameter.
    """

    __slots__ = (
        "input_size", "output_size", "hidden_size",
        "weight_range", "mutation_amount", "_weights", "_biases",
    )

    def __init__(
        self,
        input_size: int,
        output_size: int,
        hidden_size: int = 0,
        rng: Optional[np.random.Generator] = None,
        weight_range: tuple[float, float] = (-1.0, 1.0),
        mutation_amount: float = 0.2,
    ):
        """
        Create a network with independently randomized parameters.

        Args:
            input_size: Number of inputs (> 0).
            output_size: Number of outputs (> 0).
            hidden_size: Hidden units; 0 disables the hidden layer.
            rng: NumPy random generator. If None, uses default.
            weight_range: Bounds for initial values and mutation clamping.
            mutation_amount: Maximum perturbation applied by `mutate`.
        """
        if input_size < 1 or output_size < 1 or hidden_size < 0:
            raise ValueError(
                f"Invalid network shape: in={input_size}, hidden={hidden_size}, out={output_size}"
            )
        if rng is None:
            rng = np.random.default_rng()

        self.input_size = input_size
        self.output_size = output_size
        self.hidden_size = hidden_size
        self.weight_range = (float(weight_range[0]), float(weight_range[1]))
        self.mutation_amount = float(mutation_amount)

        low, high = self.weight_range
        if hidden_size > 0:
            shapes_w = [(hidden_size, input_size), (output_size, hidden_size)]
            shapes_b = [(hidden_size,), (output_size,)]
        else:
            shapes_w = [(output_size, input_size)]
            shapes_b = [(output_size,)]

        self._weights = [rng.uniform(low, high, size=s) for s in shapes_w]
        self._biases = [rng.uniform(low, high, size=s) for s in shapes_b]

    # ------------------------------------------------------------------
    # Parameters
    # ------------------------------------------------------------------

    @property
    def parameters(self) -> list[NDArray[np.float64]]:
        """Parameter arrays in genome order (views, not copies)."""
        return self._weights + self._biases

    @property
    def genome_length(self) -> int:
        return genome_length(self.parameters)

    def copy(self) -> FeedForwardNetwork:
        """Independent deep copy with identical parameters."""
        clone = FeedForwardNetwork.__new__(FeedForwardNetwork)
        clone.input_size = self.input_size
        clone.output_size = self.output_size
        clone.hidden_size = self.hidden_size
        clone.weight_range = self.weight_range
        clone.mutation_amount = self.mutation_amount
        clone._weights = [w.copy() for w in self._weights]
        clone._biases = [b.copy() for b in self._biases]
        return clone

    def same_shape(self, other: FeedForwardNetwork) -> bool:
        return (
            self.input_size == other.input_size
            and self.output_size == other.output_size
            and self.hidden_size == other.hidden_size
        )

    # ------------------------------------------------------------------
    # Forward pass
    # ------------------------------------------------------------------

    def process(self, inputs: Sequence[float]) -> NDArray[np.float64]:
        """
        Run a forward pass.

        Args:
            inputs: Sequence of exactly `input_size` numbers.

        Returns:
            Array of `output_size` values in (0, 1).

        Raises:
            ValueError: If the input length doesn't match.
        """
        x = np.asarray(inputs, dtype=np.float64)
        if x.shape != (self.input_size,):
            raise ValueError(f"Expected {self.input_size} inputs, got shape {x.shape}")

        if self.hidden_size > 0:
            hidden = np.tanh(self._weights[0] @ x + self._biases[0])
            return _sigmoid(self._weights[1] @ hidden + self._biases[1])
        return _sigmoid(self._weights[0] @ x + self._biases[0])

    # ------------------------------------------------------------------
    # Evolution operators
    # ------------------------------------------------------------------

    def mutate(self, rate: float, rng: Optional[np.random.Generator] = None) -> int:
        """
        Perturb parameters in place.

        Each parameter is selected independently with probability `rate`.
        A selected parameter moves by a random amount in
        [0.05, 1] * mutation_amount in a random direction; when that would
        leave `weight_range` the direction is reversed, then the value is
        clamped. Every selected parameter therefore changes.

        Args:
            rate: Per-parameter mutation probability in [0, 1].
            rng: Random generator. Uses default if None.

        Returns:
            Number of parameters mutated.
        """
        if rng is None:
            rng = np.random.default_rng()

        if rate <= 0.0:
            return 0

        low, high = self.weight_range
        mutated = 0
        for arr in self.parameters:
            mask = rng.random(arr.shape) < rate
            n = int(np.count_nonzero(mask))
            if n == 0:
                continue
            magnitude = rng.uniform(0.05, 1.0, size=n) * self.mutation_amount
            sign = np.where(rng.random(n) < 0.5, -1.0, 1.0)
            current = arr[mask]
            proposed = current + sign * magnitude
            out_of_range = (proposed < low) | (proposed > high)
            proposed[out_of_range] = current[out_of_range] - sign[out_of_range] * magnitude[out_of_range]
            arr[mask] = np.clip(proposed, low, high)
            mutated += n
        return mutated

    def crossover(
        self,
        other: FeedForwardNetwork,
        rng: Optional[np.random.Generator] = None,
    ) -> FeedForwardNetwork:
        """
        Uniform crossover: each parameter is copied from self or other.

        Args:
            other: Second parent with the same shape.
            rng: Random generator. Uses default if None.

        Returns:
            A new network; parents are untouched.

        Raises:
            ValueError: If shapes differ.
        """
        if not self.same_shape(other):
            raise ValueError(
                "Cannot cross networks of different shapes: "
                f"({self.input_size},{self.hidden_size},{self.output_size}) vs "
                f"({other.input_size},{other.hidden_size},{other.output_size})"
            )
        if rng is None:
            rng = np.random.default_rng()

        child = self.copy()
        for mine, theirs in zip(child.parameters, other.parameters):
            take_other = rng.random(mine.shape) < 0.5
            mine[take_other] = theirs[take_other]
        return child

    # ------------------------------------------------------------------
    # Genome I/O
    # ------------------------------------------------------------------

    def extract_genome(self) -> NDArray[np.float64]:
        """Flat copy of all parameters (weights, then biases)."""
        return flatten_params(self.parameters)

    def apply_genome(self, values: Sequence[float], strict: bool = False) -> None:
        """
        Overwrite parameters from a flat genome, in `extract_genome` order.

        Lenient by default: extra entries are ignored and missing trailing
        entries leave the current parameters in place, with a RuntimeWarning.

        Args:
            values: Flat genome.
            strict: Raise instead of partially applying on length mismatch.

        Raises:
            InvalidGenomeLength: If strict and the length doesn't match.
        """
        values = np.asarray(values, dtype=np.float64).ravel()
        expected = self.genome_length
        if len(values) != expected:
            if strict:
                raise InvalidGenomeLength(
                    f"Genome length {len(values)} != expected {expected}"
                )
            warnings.warn(
                f"Partial genome applied: got {len(values)} values, expected {expected}",
                RuntimeWarning,
                stacklevel=2,
            )
        unflatten_into(values, self.parameters)

    # ------------------------------------------------------------------
    # Representation
    # ------------------------------------------------------------------

    def __repr__(self) -> str:
        return (
            f"FeedForwardNetwork(in={self.input_size}, hidden={self.hidden_size}, "
            f"out={self.output_size}, genes={self.genome_length})"
        )
