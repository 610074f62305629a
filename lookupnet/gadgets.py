"""
ReLU arithmetic gadgets for lookupnet.

A gadget is a small construct of clamped linear combinations that realizes
one logical primitive exactly on integer inputs. Gadgets are described as
coefficients (a Neuron), not executed: the synthesizer places each neuron
into a slot of a layer and the coefficients become one column of that
layer's weight matrix.

GADGETS:
    not_equal(x, y)            relu(x - y), relu(y - x)
                               sum is 0 iff x == y, >= 1 otherwise
    masked_contribution(v, n)  relu(v - BIG * sum(n))
                               v if every not-equal term is 0, else 0
                               (requires BIG > max(v))
    thermometer_pair(s, c)     relu(s - c), relu(c - s)
    thermometer_indicator      relu(1 - above - below)
                               1 iff s == c, 0 for any other integer s
    identity(x)                relu(x), lossless for x >= 0
"""

from dataclasses import dataclass, field
from typing import Dict, List, Sequence, Tuple

import numpy as np

from .errors import ConfigurationError


@dataclass(frozen=True)
class Term:
    """One coefficient applied to a slot of the previous layer."""
    slot: int
    coefficient: float


@dataclass(frozen=True)
class Neuron:
    """A ReLU unit: relu(sum(coefficient * prev[slot]) + bias)."""
    name: str
    terms: Tuple[Term, ...]
    bias: float = 0.0

    def pre_activation(self, inputs: Sequence[float]) -> float:
        return sum(t.coefficient * inputs[t.slot] for t in self.terms) + self.bias

    def evaluate(self, inputs: Sequence[float]) -> float:
        return max(0.0, self.pre_activation(inputs))


def not_equal(x: int, y: int, name: str = "ne") -> Tuple[Neuron, Neuron]:
    """
    Both halves of the inequality test between slots x and y.

    The consumer adds the two outputs: relu(x - y) + relu(y - x) = |x - y|.
    """
    forward = Neuron(f"{name}_fwd", (Term(x, 1.0), Term(y, -1.0)))
    reverse = Neuron(f"{name}_rev", (Term(y, 1.0), Term(x, -1.0)))
    return forward, reverse


def masked_contribution(value: int, not_equal_slots: Sequence[int], big: float,
                        name: str = "contribution") -> Neuron:
    """
    Pass ``value`` through only if every not-equal term is zero.

    Any term >= 1 subtracts at least ``big``, which drives the
    pre-activation negative as long as ``big > value``.
    """
    terms = [Term(value, 1.0)]
    terms.extend(Term(slot, -big) for slot in not_equal_slots)
    return Neuron(name, tuple(terms))


def thermometer_pair(sum_slots: Sequence[int], c: int,
                     name: str = "thermo") -> Tuple[Neuron, Neuron]:
    """relu(sum - c) and relu(c - sum) for the integer class c."""
    above = Neuron(f"{name}_above_{c}",
                   tuple(Term(s, 1.0) for s in sum_slots), -float(c))
    below = Neuron(f"{name}_below_{c}",
                   tuple(Term(s, -1.0) for s in sum_slots), float(c))
    return above, below


def thermometer_indicator(above: int, below: int, name: str = "indicator") -> Neuron:
    """relu(1 - above - below): 1 exactly when the compared sum equals c."""
    return Neuron(name, (Term(above, -1.0), Term(below, -1.0)), 1.0)


def identity(slot: int, name: str = "identity") -> Neuron:
    """Forward a non-negative slot unchanged through one more layer."""
    return Neuron(name, (Term(slot, 1.0),))


@dataclass
class LayerPlan:
    """
    Dense parameters for one layer, with the names of its slots.

    Attributes:
        name: Human-readable layer name
        weights: (prev_width, width) matrix
        bias: (width,) vector
        slots: slot name -> output index
    """
    name: str
    weights: np.ndarray
    bias: np.ndarray
    slots: Dict[str, int] = field(default_factory=dict)

    @property
    def width(self) -> int:
        return self.bias.shape[0]

    def forward(self, inputs: np.ndarray, activation: bool = True) -> np.ndarray:
        out = np.asarray(inputs, dtype=np.float64) @ self.weights + self.bias
        return np.maximum(out, 0.0) if activation else out

    def as_tuple(self) -> Tuple[np.ndarray, np.ndarray]:
        return self.weights, self.bias


class WeightAssignment:
    """
    Sparse (input slot, output slot, coefficient) triples for one layer.

    Every unspecified entry is zero. Each output slot can be assigned once;
    slots are never reused for an unrelated meaning.
    """

    def __init__(self, name: str, in_width: int, out_width: int):
        self.name = name
        self.in_width = in_width
        self.out_width = out_width
        self.coefficients: Dict[Tuple[int, int], float] = {}
        self.biases: Dict[int, float] = {}
        self.slots: Dict[str, int] = {}

    def place(self, neuron: Neuron, slot: int) -> int:
        """Assign ``neuron`` to output ``slot`` and return the slot."""
        if not 0 <= slot < self.out_width:
            raise ConfigurationError(
                f"{self.name}: slot {slot} for {neuron.name} exceeds width {self.out_width}")
        if slot in self.slots.values():
            raise ConfigurationError(f"{self.name}: slot {slot} already assigned")
        for term in neuron.terms:
            if not 0 <= term.slot < self.in_width:
                raise ConfigurationError(
                    f"{self.name}: {neuron.name} reads slot {term.slot} "
                    f"outside input width {self.in_width}")
            key = (term.slot, slot)
            self.coefficients[key] = self.coefficients.get(key, 0.0) + term.coefficient
        if neuron.bias:
            self.biases[slot] = neuron.bias
        self.slots[neuron.name] = slot
        return slot

    def place_all(self, neurons: Sequence[Neuron], start: int = 0) -> List[int]:
        return [self.place(n, start + i) for i, n in enumerate(neurons)]

    def set_bias(self, slot: int, value: float) -> None:
        """Bias for a slot that carries no neuron (e.g. calibration)."""
        self.biases[slot] = value

    def set_weight(self, in_slot: int, out_slot: int, value: float) -> None:
        self.coefficients[(in_slot, out_slot)] = value

    def triples(self) -> List[Tuple[int, int, float]]:
        return sorted((i, o, c) for (i, o), c in self.coefficients.items())

    def to_plan(self, dtype=np.float32) -> LayerPlan:
        """Build freshly allocated dense arrays; nothing is shared with self."""
        weights = np.zeros((self.in_width, self.out_width), dtype=dtype)
        bias = np.zeros(self.out_width, dtype=dtype)
        for (i, o), c in self.coefficients.items():
            weights[i, o] = c
        for o, b in self.biases.items():
            bias[o] = b
        return LayerPlan(self.name, weights, bias, dict(self.slots))
