"""
Examples demonstrating lookupnet usage.

Run with: python -m lookupnet.examples
"""

import logging

from lookupnet.network import LookupNetwork
from lookupnet.synthesizer import LayerSynthesizer, Topology, can_synthesize
from lookupnet.verify import verify_network
from lookupnet.vocabulary import LookupRecord, Vocabulary


def example_basic_lookup():
    """Synthesize the reference network and query it."""
    print("=" * 60)
    print("Example 1: Exact Lookup")
    print("=" * 60)

    vocab = Vocabulary.reference()
    net = LookupNetwork.from_synthesis(Topology.for_vocabulary(vocab), vocab)

    for text in ("A=1 B=2 A=", "A=1 B=2 B=", "A=1 B=2 C="):
        record = LookupRecord.from_string(text, vocab)
        probs = net.predict_proba([record])[0]
        shown = " ".join(f"P({t.short})={float(probs[t.index]):.2f}" for t in vocab.tokens)
        print(f"{text}___  ->  {shown}")
    print()


def example_layer_plans():
    """Show the named slots and non-zero weights of every layer."""
    print("=" * 60)
    print("Example 2: Layer Plans")
    print("=" * 60)

    vocab = Vocabulary.reference()
    for plan in LayerSynthesizer(Topology(5, 6, 6), vocab).plan():
        slots = ", ".join(f"{name}@{slot}" for name, slot in sorted(plan.slots.items(),
                                                                    key=lambda kv: kv[1]))
        print(f"{plan.name}: {plan.weights.shape}  {slots}")
    print()


def example_configuration_checks():
    """Configurations the synthesizer refuses, with reasons."""
    print("=" * 60)
    print("Example 3: Configuration Checks")
    print("=" * 60)

    vocab = Vocabulary.reference()
    for topology in (Topology(4, 6, 6), Topology(3, 6, 6), Topology(4, 5, 6),
                     Topology(4, 6, 6, input_format='embedding')):
        result = can_synthesize(topology, vocab)
        print(f"{topology}: {'ok' if result.ok else result.reason}")
    big = Vocabulary(3, 100)
    print(f"{big}: {can_synthesize(Topology.for_vocabulary(big), big).reason}")
    print()


def example_verification():
    """Exhaustive check at several depths."""
    print("=" * 60)
    print("Example 4: Exhaustive Verification")
    print("=" * 60)

    for keys, values in ((3, 3), (4, 6)):
        vocab = Vocabulary(keys, values)
        for depth in (4, 8):
            net = LookupNetwork.from_synthesis(Topology.for_vocabulary(vocab, num_layers=depth), vocab)
            print(f"{vocab} depth={depth}: {verify_network(net, vocab)}")
    print()


def run_all_examples():
    """Run all examples."""
    example_basic_lookup()
    example_layer_plans()
    example_configuration_checks()
    example_verification()


if __name__ == '__main__':
    logging.basicConfig(level=logging.INFO, format="%(name)s %(levelname)s: %(message)s")
    run_all_examples()
