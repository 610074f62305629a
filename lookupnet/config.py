"""
Default constants for lookupnet.

Every operation takes these as overridable arguments; nothing in the
package reads mutable module state at call time.
"""

# --- 1. NETWORK TOPOLOGY ---
NETWORK_DEFAULTS = {
    'NUM_LAYERS': 4,           # Hidden layers of the reference network
    'NEURONS_PER_LAYER': 6,    # Width of every hidden layer
    'VOCAB_SIZE': 3,           # Keys and values in the reference vocabulary
    'INPUT_FORMAT': 'number',  # Raw token numbers fed straight to layer 1
}

INPUT_FORMATS = ('number', 'one-hot', 'embedding')

# --- 2. SYNTHESIS PARAMETERS ---
SYNTHESIS_PARAMS = {
    'SUPPRESSION_CONSTANT': 1000.0,  # BIG: weight on each not-equal half term
    'SAFETY_FACTOR': 10,             # BIG must be >= factor * (max_value + 1)
    'MIN_LAYERS': 4,                 # not-equal, mask, thermometer, indicator
    'MIN_NEURONS': 6,                # Layer 1 needs 4 not-equal halves + 2 values
}

# --- 3. OUTPUT CALIBRATION ---
CALIBRATION_PARAMS = {
    'AMPLIFICATION': 1000.0,     # Indicator -> value logit weight
    'VALUE_BIAS': -100.0,        # Bias on every value-class logit
    'KEY_BIAS': float('-inf'),   # Bias on key-class and unused logits
    'MIN_MARGIN': 800.0,         # Required winning margin for a fired branch
}
