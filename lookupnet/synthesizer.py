"""
Layer Synthesizer for lookupnet.

Compiles the lookup function into explicit ReLU-network parameters, layer by
layer, out of the gadgets in ``lookupnet.gadgets``. The derivation:

    output = oneHot(valueIfEqual(value1, query, key1) +
                    valueIfEqual(value2, query, key2))

    valueIfEqual(v, x, y) = relu(v - BIG * notEqual(x, y))
    notEqual(x, y)        = relu(x - y) + relu(y - x)
    oneHot(s)[c]          = relu(1 - relu(s - c) - relu(c - s))

Because key1 != key2, at most one contribution is non-zero and the sum is
either 0 (no branch fired) or exactly the looked-up value.

LAYERS:
    1. ne1_fwd, ne1_rev, ne2_fwd, ne2_rev, value1, value2
    2. contribution1, contribution2
    3. above_c for c in 1..V, then below_c for c in 1..V
    4. indicator_c for c in 1..V, remaining slots zero
    5..N. identity on the V indicator slots, remaining slots zero
    output. calibration (see ``lookupnet.calibrator``)

SUPPRESSION CONSTANT:
    A masked contribution is zeroed only if BIG * 1 > max_value. We require
    BIG >= SAFETY_FACTOR * (max_value + 1) as a runtime-checked
    precondition; with the defaults (1000, 10) that admits up to 99 value
    tokens. Configurations outside the bound are rejected, never built.

Usage:
    from lookupnet import Topology, Vocabulary, synthesize

    params = synthesize(Topology(4, 6, 6), Vocabulary(3))
    for weights, bias in params:
        ...
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np

from .calibrator import OutputCalibrator
from .config import INPUT_FORMATS, NETWORK_DEFAULTS, SYNTHESIS_PARAMS
from .errors import ConfigurationError
from .gadgets import (
    LayerPlan,
    WeightAssignment,
    identity,
    masked_contribution,
    not_equal,
    thermometer_indicator,
    thermometer_pair,
)
from .vocabulary import INPUT_SIZE, InputLayout, Vocabulary

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Topology:
    """
    Requested network shape.

    Attributes:
        num_layers: Number of hidden ReLU layers
        neurons_per_layer: Width of every hidden layer
        vocab_size: Output size (all tokens, keys and values)
        input_format: How tokens reach layer 1: 'number', 'one-hot' or
                      'embedding'. Only 'number' can be synthesized.
    """
    num_layers: int = NETWORK_DEFAULTS['NUM_LAYERS']
    neurons_per_layer: int = NETWORK_DEFAULTS['NEURONS_PER_LAYER']
    vocab_size: int = 2 * NETWORK_DEFAULTS['VOCAB_SIZE']
    input_format: str = NETWORK_DEFAULTS['INPUT_FORMAT']

    @classmethod
    def for_vocabulary(cls, vocabulary: Vocabulary, num_layers: Optional[int] = None,
                       neurons_per_layer: Optional[int] = None) -> 'Topology':
        """Smallest valid topology for ``vocabulary``, unless overridden."""
        return cls(
            num_layers=num_layers if num_layers is not None else SYNTHESIS_PARAMS['MIN_LAYERS'],
            neurons_per_layer=(neurons_per_layer if neurons_per_layer is not None
                               else minimum_width(vocabulary)),
            vocab_size=vocabulary.output_size,
        )

    def layer_widths(self) -> List[int]:
        return [INPUT_SIZE] + [self.neurons_per_layer] * self.num_layers + [self.vocab_size]


@dataclass(frozen=True)
class SynthesisCheck:
    """Answer of can_synthesize: whether synthesis is possible, and why not."""
    ok: bool
    reason: str = ""

    def __bool__(self) -> bool:
        return self.ok


def minimum_width(vocabulary: Vocabulary) -> int:
    """Layer 1 needs 6 slots; layer 3 needs two thermometer halves per value."""
    return max(SYNTHESIS_PARAMS['MIN_NEURONS'], 2 * vocabulary.num_values)


def suppression_bound(max_value: int,
                      safety_factor: int = SYNTHESIS_PARAMS['SAFETY_FACTOR']) -> float:
    """Smallest admissible BIG for values up to ``max_value``."""
    return float(safety_factor * (max_value + 1))


class LayerSynthesizer:
    """
    Builds the sequence of layer plans implementing the lookup function.

    Args:
        topology: Requested network shape
        vocabulary: Token vocabulary
        suppression: The suppression constant BIG
        safety_factor: Required ratio between BIG and (max_value + 1)
        calibrator: Output calibrator; a default one is built if omitted
    """

    def __init__(self, topology: Topology, vocabulary: Vocabulary,
                 suppression: float = SYNTHESIS_PARAMS['SUPPRESSION_CONSTANT'],
                 safety_factor: int = SYNTHESIS_PARAMS['SAFETY_FACTOR'],
                 calibrator: Optional[OutputCalibrator] = None):
        self.topology = topology
        self.vocabulary = vocabulary
        self.suppression = float(suppression)
        self.safety_factor = safety_factor
        self.calibrator = calibrator or OutputCalibrator(vocabulary)

    def check(self) -> SynthesisCheck:
        topology = self.topology
        vocabulary = self.vocabulary
        min_layers = SYNTHESIS_PARAMS['MIN_LAYERS']
        min_width = minimum_width(vocabulary)

        if topology.input_format not in INPUT_FORMATS:
            return SynthesisCheck(False, f"Unknown input format '{topology.input_format}'.")
        if topology.input_format != 'number':
            return SynthesisCheck(
                False,
                f"Exact weights need raw token numbers as input; "
                f"the '{topology.input_format}' input format is not supported.")
        if topology.num_layers < min_layers:
            return SynthesisCheck(
                False,
                f"Exact weights need at least {min_layers} hidden layers "
                f"(requested {topology.num_layers}).")
        if topology.neurons_per_layer < min_width:
            return SynthesisCheck(
                False,
                f"Exact weights need at least {min_width} neurons per layer "
                f"for {vocabulary.num_values} values (requested {topology.neurons_per_layer}).")
        if topology.vocab_size != vocabulary.output_size:
            return SynthesisCheck(
                False,
                f"Topology output size {topology.vocab_size} does not match "
                f"the vocabulary's {vocabulary.output_size} tokens.")
        if not (np.isfinite(self.suppression)
                and abs(self.suppression) <= np.finfo(np.float32).max):
            return SynthesisCheck(
                False,
                f"Suppression constant {self.suppression:g} is not a finite float32; "
                f"a matching branch would compute 0 * BIG.")
        bound = suppression_bound(vocabulary.max_value, self.safety_factor)
        if self.suppression < bound:
            return SynthesisCheck(
                False,
                f"Suppression constant {self.suppression:g} is below the safe bound "
                f"{bound:g} for values up to {vocabulary.max_value}.")
        reason = self.calibrator.validate()
        if reason is not None:
            return SynthesisCheck(False, reason)
        return SynthesisCheck(True)

    def plan(self) -> List[LayerPlan]:
        """
        Build every layer, output calibration included.

        Raises:
            ConfigurationError: if check() fails. Nothing is built in that case.
        """
        result = self.check()
        if not result.ok:
            logger.warning("Rejected configuration %s for %s: %s",
                           self.topology, self.vocabulary, result.reason)
            raise ConfigurationError(result.reason)

        width = self.topology.neurons_per_layer
        plans = []

        layer1, ne1, ne2, values = self._not_equal_layer(width)
        plans.append(layer1)
        layer2, contributions = self._mask_layer(width, ne1, ne2, values)
        plans.append(layer2)
        layer3, above, below = self._thermometer_layer(width, contributions)
        plans.append(layer3)
        layer4, indicators = self._indicator_layer(width, above, below)
        plans.append(layer4)

        for depth in range(SYNTHESIS_PARAMS['MIN_LAYERS'] + 1, self.topology.num_layers + 1):
            padding, indicators = self._padding_layer(width, indicators, depth)
            plans.append(padding)

        plans.append(self.calibrator.build(indicators, width))

        for plan in plans:
            logger.debug("%s: weights %s, %d named slots",
                         plan.name, plan.weights.shape, len(plan.slots))
        logger.info("Synthesized %d layers for %s", len(plans), self.vocabulary)
        return plans

    def synthesize(self) -> List[Tuple[np.ndarray, np.ndarray]]:
        return [plan.as_tuple() for plan in self.plan()]

    def _not_equal_layer(self, width: int):
        layer = WeightAssignment("layer1", INPUT_SIZE, width)
        ne1 = not_equal(InputLayout.QUERY, InputLayout.KEY1, name="ne1")
        ne2 = not_equal(InputLayout.QUERY, InputLayout.KEY2, name="ne2")
        ne1_slots = layer.place_all(ne1, start=0)
        ne2_slots = layer.place_all(ne2, start=2)
        values = [
            layer.place(identity(InputLayout.VALUE1, name="value1"), 4),
            layer.place(identity(InputLayout.VALUE2, name="value2"), 5),
        ]
        return layer.to_plan(), ne1_slots, ne2_slots, values

    def _mask_layer(self, width: int, ne1, ne2, values):
        layer = WeightAssignment("layer2", width, width)
        contributions = [
            layer.place(masked_contribution(values[0], ne1, self.suppression,
                                            name="contribution1"), 0),
            layer.place(masked_contribution(values[1], ne2, self.suppression,
                                            name="contribution2"), 1),
        ]
        return layer.to_plan(), contributions

    def _thermometer_layer(self, width: int, contributions):
        layer = WeightAssignment("layer3", width, width)
        num_values = self.vocabulary.num_values
        above, below = [], []
        for i, token in enumerate(self.vocabulary.value_tokens):
            up, down = thermometer_pair(contributions, token.number)
            above.append(layer.place(up, i))
            below.append(layer.place(down, num_values + i))
        return layer.to_plan(), above, below

    def _indicator_layer(self, width: int, above, below):
        layer = WeightAssignment("layer4", width, width)
        indicators = [
            layer.place(thermometer_indicator(a, b, name=f"indicator_{token.short}"), i)
            for i, (token, a, b) in enumerate(zip(self.vocabulary.value_tokens, above, below))
        ]
        return layer.to_plan(), indicators

    def _padding_layer(self, width: int, indicators, depth: int):
        layer = WeightAssignment(f"layer{depth}", width, width)
        forwarded = [
            layer.place(identity(slot, name=f"indicator_{token.short}"), slot)
            for token, slot in zip(self.vocabulary.value_tokens, indicators)
        ]
        return layer.to_plan(), forwarded


def can_synthesize(topology: Topology, vocabulary: Vocabulary,
                   suppression: float = SYNTHESIS_PARAMS['SUPPRESSION_CONSTANT'],
                   safety_factor: int = SYNTHESIS_PARAMS['SAFETY_FACTOR'],
                   calibrator: Optional[OutputCalibrator] = None) -> SynthesisCheck:
    """
    Capability query: can exact weights be built for this configuration?

    Returns:
        SynthesisCheck with ok=False and a human-readable reason if not
    """
    return LayerSynthesizer(topology, vocabulary, suppression, safety_factor, calibrator).check()


def synthesize(topology: Topology, vocabulary: Vocabulary,
               suppression: float = SYNTHESIS_PARAMS['SUPPRESSION_CONSTANT'],
               safety_factor: int = SYNTHESIS_PARAMS['SAFETY_FACTOR'],
               calibrator: Optional[OutputCalibrator] = None
               ) -> List[Tuple[np.ndarray, np.ndarray]]:
    """
    Synthesize exact parameters for the lookup network.

    Args:
        topology: Requested shape; num_layers >= 4, width >= max(6, 2V)
        vocabulary: Token vocabulary
        suppression: The suppression constant BIG
        safety_factor: Required ratio between BIG and (max_value + 1)
        calibrator: Output calibrator override

    Returns:
        num_layers + 1 pairs (weights (prev_width, width), bias (width,)),
        freshly allocated

    Raises:
        ConfigurationError: if the configuration cannot be synthesized
    """
    synthesizer = LayerSynthesizer(topology, vocabulary, suppression, safety_factor, calibrator)
    return synthesizer.synthesize()
