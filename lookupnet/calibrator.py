"""
Output calibration for lookupnet.

After the last hidden layer the network holds exact indicators:

    A=1 B=2 A=___    P(1) = 1, P(2) = 0, P(3) = 0
    A=1 B=2 C=___    P(1) = 0, P(2) = 0, P(3) = 0

A softmax over those raw values would flatten them (e^1 vs e^0 is only
73% vs 27%) and would put mass on key tokens. The calibration layer scales
each indicator by a large amplification into its value logit, gives every
value logit a moderate negative bias, and pins key logits to -inf, so that:

- a fired indicator wins by at least ``amplification - bias spread``
- with no indicator fired, the value logits tie and share the mass evenly
- key tokens never receive probability
"""

import logging
import math
from typing import Dict, Optional, Sequence

from .config import CALIBRATION_PARAMS
from .errors import ConfigurationError
from .gadgets import LayerPlan, WeightAssignment
from .vocabulary import Vocabulary

logger = logging.getLogger(__name__)


class OutputCalibrator:
    """
    Builds the final linear layer mapping V indicator slots to logits.

    Args:
        vocabulary: Vocabulary whose value tokens the indicators represent
        amplification: Weight from an indicator to its value logit
        value_bias: Bias of every value logit, or a per-value mapping
                    {value token number: bias}
        key_bias: Bias of key logits and unused output slots; -inf or a
                  large negative finite constant
    """

    def __init__(self, vocabulary: Vocabulary,
                 amplification: float = CALIBRATION_PARAMS['AMPLIFICATION'],
                 value_bias=CALIBRATION_PARAMS['VALUE_BIAS'],
                 key_bias: float = CALIBRATION_PARAMS['KEY_BIAS']):
        self.vocabulary = vocabulary
        self.amplification = float(amplification)
        if isinstance(value_bias, dict):
            self.value_biases: Dict[int, float] = {
                t.number: float(value_bias.get(t.number, CALIBRATION_PARAMS['VALUE_BIAS']))
                for t in vocabulary.value_tokens
            }
        else:
            self.value_biases = {t.number: float(value_bias) for t in vocabulary.value_tokens}
        self.key_bias = float(key_bias)

    def bias_spread(self) -> float:
        biases = list(self.value_biases.values())
        return max(biases) - min(biases)

    def dominance_margin(self) -> float:
        """Lower bound on (winning logit - any other logit) for a fired branch."""
        return self.amplification - self.bias_spread()

    def validate(self, min_margin: float = CALIBRATION_PARAMS['MIN_MARGIN']) -> Optional[str]:
        """
        Reason these constants cannot calibrate the output, or None.

        Key logits must sit strictly below every value logit so an unfired
        record never predicts a key, and a fired indicator must win by at
        least ``min_margin``.
        """
        if not math.isfinite(self.amplification):
            return f"Calibration amplification {self.amplification:g} is not finite."
        if not all(math.isfinite(b) for b in self.value_biases.values()):
            return "Calibration value biases must be finite."
        lowest = min(self.value_biases.values())
        if not self.key_bias < lowest:
            return (f"Key bias {self.key_bias:g} must be below every value bias "
                    f"(lowest {lowest:g}).")
        if self.dominance_margin() < min_margin:
            return (f"Calibration margin {self.dominance_margin():g} is below "
                    f"the required {min_margin:g}.")
        return None

    def build(self, indicator_slots: Sequence[int], in_width: int,
              name: Optional[str] = None) -> LayerPlan:
        """
        Args:
            indicator_slots: indicator_slots[i] holds the indicator for value i + 1
            in_width: Width of the last hidden layer

        Returns:
            LayerPlan of shape (in_width, vocabulary.output_size)

        Raises:
            ConfigurationError: if validate() reports a problem
        """
        reason = self.validate()
        if reason is not None:
            raise ConfigurationError(reason)
        name = name or "output"
        layer = WeightAssignment(name, in_width, self.vocabulary.output_size)

        for token, slot in zip(self.vocabulary.value_tokens, indicator_slots):
            layer.set_weight(slot, token.index, self.amplification)
            layer.slots[f"logit_{token.short}"] = token.index

        for index in range(self.vocabulary.output_size):
            layer.set_bias(index, self.key_bias)
        for token in self.vocabulary.value_tokens:
            layer.set_bias(token.index, self.value_biases[token.number])

        logger.debug("Calibration layer: amplification=%s margin=%s",
                     self.amplification, self.dominance_margin())
        return layer.to_plan()
