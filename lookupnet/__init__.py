"""
lookupnet: exact weights for a ReLU associative-lookup network

Instead of training, lookupnet compiles the lookup

    A=1 B=2 A=___  ->  1

into explicit weight matrices and bias vectors for a fixed dense ReLU
network with a softmax output. The network then computes the lookup exactly
for every input in the vocabulary, at any requested depth >= 4.

QUICK START:
    from lookupnet import Vocabulary, Topology, LookupNetwork, LookupRecord

    vocab = Vocabulary(3)                      # keys A-C, values 1-3
    topology = Topology.for_vocabulary(vocab, num_layers=6)
    net = LookupNetwork.from_synthesis(topology, vocab)

    record = LookupRecord.from_string("A=1 B=2 A=", vocab)
    net.predict([record])                      # [1]

PIPELINE:
    1. Domain Model       - lookupnet.vocabulary
    2. Gadget Library     - lookupnet.gadgets
    3. Layer Synthesizer  - lookupnet.synthesizer
    4. Output Calibrator  - lookupnet.calibrator
"""

from .errors import LookupNetError, ConfigurationError, DomainViolation
from .vocabulary import (
    Token,
    TokenClass,
    Vocabulary,
    InputLayout,
    LookupRecord,
    INPUT_SIZE,
    enumerate_records,
)
from .gadgets import (
    Term,
    Neuron,
    LayerPlan,
    WeightAssignment,
    not_equal,
    masked_contribution,
    thermometer_pair,
    thermometer_indicator,
    identity,
)
from .calibrator import OutputCalibrator
from .synthesizer import (
    Topology,
    SynthesisCheck,
    LayerSynthesizer,
    can_synthesize,
    synthesize,
    minimum_width,
    suppression_bound,
)
from .network import LookupNetwork
from .verify import VerificationReport, verify_network

__version__ = "1.0.0"
__all__ = [
    # Errors
    "LookupNetError",
    "ConfigurationError",
    "DomainViolation",
    # Domain model
    "Token",
    "TokenClass",
    "Vocabulary",
    "InputLayout",
    "LookupRecord",
    "INPUT_SIZE",
    "enumerate_records",
    # Gadgets
    "Term",
    "Neuron",
    "LayerPlan",
    "WeightAssignment",
    "not_equal",
    "masked_contribution",
    "thermometer_pair",
    "thermometer_indicator",
    "identity",
    # Synthesis
    "OutputCalibrator",
    "Topology",
    "SynthesisCheck",
    "LayerSynthesizer",
    "can_synthesize",
    "synthesize",
    "minimum_width",
    "suppression_bound",
    # Host network
    "LookupNetwork",
    "VerificationReport",
    "verify_network",
]
