"""
Tests for the layer synthesizer and output calibrator.

These tests verify:
1. Parameter shapes and layer count
2. Configuration rejection through can_synthesize
3. Exact indicators after layer 4 for every record
4. Depth invariance of the indicators
5. Calibration layer structure and margin
"""

import unittest

import numpy as np

from lookupnet.calibrator import OutputCalibrator
from lookupnet.errors import ConfigurationError
from lookupnet.synthesizer import (
    LayerSynthesizer,
    Topology,
    can_synthesize,
    minimum_width,
    suppression_bound,
    synthesize,
)
from lookupnet.vocabulary import INPUT_SIZE, Vocabulary, enumerate_records


def run_hidden(plans, record):
    """Evaluate every hidden layer plan on one record (numpy reference)."""
    x = np.array(record.to_list(), dtype=np.float64)
    for plan in plans[:-1]:
        x = plan.forward(x)
    return x


class TestShapes(unittest.TestCase):

    def test_reference_shapes(self):
        vocab = Vocabulary(3)
        params = synthesize(Topology(4, 6, 6), vocab)

        self.assertEqual(len(params), 5)
        self.assertEqual(params[0][0].shape, (INPUT_SIZE, 6))
        for weights, bias in params[1:-1]:
            self.assertEqual(weights.shape, (6, 6))
            self.assertEqual(bias.shape, (6,))
        self.assertEqual(params[-1][0].shape, (6, 6))
        self.assertEqual(params[-1][1].shape, (6,))

    def test_layer_count_follows_depth(self):
        vocab = Vocabulary(3)
        for num_layers in (4, 5, 9):
            params = synthesize(Topology(num_layers, 8, 6), vocab)
            self.assertEqual(len(params), num_layers + 1)
            self.assertEqual(params[0][0].shape, (INPUT_SIZE, 8))

    def test_minimum_width(self):
        self.assertEqual(minimum_width(Vocabulary(3)), 6)
        self.assertEqual(minimum_width(Vocabulary(2)), 6)
        self.assertEqual(minimum_width(Vocabulary(3, 5)), 10)

    def test_layer1_slots(self):
        plans = LayerSynthesizer(Topology(4, 6, 6), Vocabulary(3)).plan()
        slots = plans[0].slots

        self.assertEqual(slots['ne1_fwd'], 0)
        self.assertEqual(slots['ne1_rev'], 1)
        self.assertEqual(slots['ne2_fwd'], 2)
        self.assertEqual(slots['ne2_rev'], 3)
        self.assertEqual(slots['value1'], 4)
        self.assertEqual(slots['value2'], 5)

    def test_mask_weights_use_suppression(self):
        plans = LayerSynthesizer(Topology(4, 6, 6), Vocabulary(3), suppression=500.0).plan()
        layer2 = plans[1].weights

        self.assertEqual(layer2[4, 0], 1.0)
        self.assertEqual(layer2[0, 0], -500.0)
        self.assertEqual(layer2[1, 0], -500.0)
        self.assertEqual(layer2[2, 1], -500.0)
        self.assertEqual(layer2[3, 1], -500.0)


class TestCanSynthesize(unittest.TestCase):

    def setUp(self):
        self.vocab = Vocabulary(3)

    def test_reference_ok(self):
        result = can_synthesize(Topology(4, 6, 6), self.vocab)

        self.assertTrue(result.ok)
        self.assertTrue(result)
        self.assertEqual(result.reason, "")

    def test_width_below_six_rejected(self):
        for width in range(1, 6):
            result = can_synthesize(Topology(4, width, 6), self.vocab)
            self.assertFalse(result.ok)
            self.assertIn("neurons per layer", result.reason)

    def test_depth_below_four_rejected(self):
        for depth in range(0, 4):
            result = can_synthesize(Topology(depth, 6, 6), self.vocab)
            self.assertFalse(result.ok)
            self.assertIn("hidden layers", result.reason)

    def test_width_scales_with_values(self):
        vocab = Vocabulary(3, 5)
        self.assertFalse(can_synthesize(Topology(4, 9, 10), vocab).ok)
        self.assertTrue(can_synthesize(Topology(4, 10, 10), vocab).ok)

    def test_non_number_input_rejected(self):
        for fmt in ('one-hot', 'embedding', 'bogus'):
            result = can_synthesize(Topology(4, 6, 6, input_format=fmt), self.vocab)
            self.assertFalse(result.ok)
            self.assertIn(fmt, result.reason)

    def test_vocab_size_mismatch_rejected(self):
        result = can_synthesize(Topology(4, 6, 8), self.vocab)
        self.assertFalse(result.ok)

    def test_suppression_bound(self):
        """BIG = 1000 admits 99 values and rejects 100."""
        self.assertEqual(suppression_bound(99), 1000.0)
        ok_vocab = Vocabulary(3, 99)
        bad_vocab = Vocabulary(3, 100)

        self.assertTrue(can_synthesize(Topology.for_vocabulary(ok_vocab), ok_vocab).ok)
        result = can_synthesize(Topology.for_vocabulary(bad_vocab), bad_vocab)
        self.assertFalse(result.ok)
        self.assertIn("Suppression constant", result.reason)

    def test_small_suppression_rejected(self):
        result = can_synthesize(Topology(4, 6, 6), self.vocab, suppression=39.0)
        self.assertFalse(result.ok)
        self.assertTrue(can_synthesize(Topology(4, 6, 6), self.vocab, suppression=40.0).ok)

    def test_non_finite_suppression_rejected(self):
        for big in (float('inf'), float('nan'), 1e40):
            result = can_synthesize(Topology(4, 6, 6), self.vocab, suppression=big)
            self.assertFalse(result.ok)
            self.assertIn("not a finite", result.reason)
            with self.assertRaises(ConfigurationError):
                synthesize(Topology(4, 6, 6), self.vocab, suppression=big)

    def test_key_bias_above_value_bias_rejected(self):
        """A key bias above the value biases would make unfired records predict keys."""
        calibrator = OutputCalibrator(self.vocab, key_bias=-50.0)
        result = can_synthesize(Topology(4, 6, 6), self.vocab, calibrator=calibrator)

        self.assertFalse(result.ok)
        self.assertIn("Key bias", result.reason)
        with self.assertRaises(ConfigurationError):
            synthesize(Topology(4, 6, 6), self.vocab, calibrator=calibrator)

    def test_equal_key_bias_rejected(self):
        calibrator = OutputCalibrator(self.vocab, key_bias=-100.0)
        self.assertFalse(can_synthesize(Topology(4, 6, 6), self.vocab, calibrator=calibrator).ok)

    def test_small_calibration_margin_rejected(self):
        calibrator = OutputCalibrator(self.vocab, amplification=10.0,
                                      value_bias={1: -100.0, 2: 0.0, 3: 0.0})
        result = can_synthesize(Topology(4, 6, 6), self.vocab, calibrator=calibrator)

        self.assertFalse(result.ok)
        self.assertIn("margin", result.reason)
        with self.assertRaises(ConfigurationError):
            synthesize(Topology(4, 6, 6), self.vocab, calibrator=calibrator)

    def test_finite_key_bias_accepted(self):
        calibrator = OutputCalibrator(self.vocab, key_bias=-1e6)
        self.assertTrue(can_synthesize(Topology(4, 6, 6), self.vocab, calibrator=calibrator).ok)

    def test_synthesize_raises(self):
        with self.assertRaises(ConfigurationError):
            synthesize(Topology(4, 5, 6), self.vocab)
        with self.assertRaises(ValueError):
            synthesize(Topology(3, 6, 6), self.vocab)


class TestIndicators(unittest.TestCase):
    """The last hidden layer holds an exact one-hot of the looked-up value."""

    def check_exact(self, vocab, topology):
        plans = LayerSynthesizer(topology, vocab).plan()
        for record in enumerate_records(vocab):
            hidden = run_hidden(plans, record)
            expected = np.zeros(topology.neurons_per_layer)
            if record.expected() is not None:
                expected[record.expected() - 1] = 1.0
            np.testing.assert_array_equal(hidden, expected, err_msg=str(record))

    def test_reference_vocabulary(self):
        self.check_exact(Vocabulary(3), Topology(4, 6, 6))

    def test_wider_layers(self):
        self.check_exact(Vocabulary(3), Topology(4, 11, 6))

    def test_unbalanced_vocabularies(self):
        for keys, values in ((2, 4), (5, 3), (4, 4)):
            vocab = Vocabulary(keys, values)
            self.check_exact(vocab, Topology.for_vocabulary(vocab))

    def test_depth_invariance(self):
        vocab = Vocabulary(3)
        base = LayerSynthesizer(Topology(4, 6, 6), vocab).plan()
        records = list(enumerate_records(vocab))
        reference = [run_hidden(base, r) for r in records]

        for extra in range(1, 5):
            plans = LayerSynthesizer(Topology(4 + extra, 6, 6), vocab).plan()
            for record, expected in zip(records, reference):
                np.testing.assert_array_equal(run_hidden(plans, record), expected)

    def test_padding_is_identity_on_indicators(self):
        plans = LayerSynthesizer(Topology(6, 6, 6), Vocabulary(3)).plan()
        for plan in plans[4:6]:
            expected = np.zeros((6, 6))
            expected[0, 0] = expected[1, 1] = expected[2, 2] = 1.0
            np.testing.assert_array_equal(plan.weights, expected)
            np.testing.assert_array_equal(plan.bias, np.zeros(6))

    def test_deterministic(self):
        vocab = Vocabulary(3)
        first = synthesize(Topology(5, 6, 6), vocab)
        second = synthesize(Topology(5, 6, 6), vocab)
        for (w1, b1), (w2, b2) in zip(first, second):
            np.testing.assert_array_equal(w1, w2)
            np.testing.assert_array_equal(b1, b2)

    def test_results_not_shared(self):
        vocab = Vocabulary(3)
        first = synthesize(Topology(4, 6, 6), vocab)
        first[0][0][:] = 7.0
        second = synthesize(Topology(4, 6, 6), vocab)
        self.assertEqual(second[0][0][0, 1], 1.0)


class TestCalibrator(unittest.TestCase):

    def test_reference_layer(self):
        vocab = Vocabulary(3)
        plan = OutputCalibrator(vocab).build([0, 1, 2], 6)

        self.assertEqual(plan.weights.shape, (6, 6))
        for i in range(3):
            self.assertEqual(plan.weights[i, i], 1000.0)
            self.assertEqual(plan.bias[i], -100.0)
        for i in range(3, 6):
            self.assertEqual(plan.bias[i], float('-inf'))
        self.assertEqual(np.count_nonzero(plan.weights), 3)

    def test_padding_outputs_get_key_bias(self):
        vocab = Vocabulary(2, 4)
        plan = OutputCalibrator(vocab).build([0, 1, 2, 3], 8)

        self.assertEqual(plan.bias.shape, (8,))
        np.testing.assert_array_equal(plan.bias[:4], [-100.0] * 4)
        self.assertTrue(np.all(np.isneginf(plan.bias[4:])))

    def test_dominance_margin(self):
        calibrator = OutputCalibrator(Vocabulary(3))
        self.assertEqual(calibrator.dominance_margin(), 1000.0)
        self.assertGreaterEqual(calibrator.dominance_margin(), 800.0)

    def test_bias_spread_reduces_margin(self):
        calibrator = OutputCalibrator(Vocabulary(3), value_bias={1: -100.0, 2: -250.0})
        self.assertEqual(calibrator.bias_spread(), 150.0)
        self.assertEqual(calibrator.dominance_margin(), 850.0)

    def test_validate(self):
        vocab = Vocabulary(3)
        self.assertIsNone(OutputCalibrator(vocab).validate())
        self.assertIsNotNone(OutputCalibrator(vocab, key_bias=0.0).validate())
        self.assertIsNotNone(OutputCalibrator(vocab, amplification=700.0).validate())
        self.assertIsNotNone(OutputCalibrator(vocab, amplification=float('inf')).validate())
        self.assertIsNotNone(OutputCalibrator(vocab, value_bias=float('nan')).validate())

    def test_build_rejects_invalid_constants(self):
        with self.assertRaises(ConfigurationError):
            OutputCalibrator(Vocabulary(3), key_bias=-50.0).build([0, 1, 2], 6)

    def test_finite_key_bias(self):
        plan = OutputCalibrator(Vocabulary(3), key_bias=-1e6).build([0, 1, 2], 6)
        self.assertEqual(plan.bias[5], -1e6)

    def test_logits_for_fired_and_unfired(self):
        plan = OutputCalibrator(Vocabulary(3)).build([0, 1, 2], 6)

        fired = plan.forward(np.array([0, 1, 0, 0, 0, 0.0]), activation=False)
        self.assertEqual(fired[1], 900.0)
        self.assertEqual(fired[0], -100.0)

        unfired = plan.forward(np.zeros(6), activation=False)
        np.testing.assert_array_equal(unfired[:3], [-100.0] * 3)


if __name__ == '__main__':
    unittest.main()
