"""
Exhaustive verification of a lookup network.

The domain is small enough to enumerate, so correctness is checked on every
record rather than sampled:

- fired records must predict the looked-up value
- don't-care records must put all probability on value tokens
- fired records must win by at least the calibration margin
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import torch

from .config import CALIBRATION_PARAMS
from .network import LookupNetwork
from .vocabulary import LookupRecord, Vocabulary, enumerate_records

logger = logging.getLogger(__name__)


@dataclass
class VerificationReport:
    """Outcome of verify_network."""
    total: int = 0
    fired: int = 0
    dont_care: int = 0
    min_margin: float = float('inf')
    max_key_mass: float = 0.0
    failures: List[Tuple[LookupRecord, Optional[int], int]] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return not self.failures

    def __str__(self) -> str:
        status = "PASS" if self.passed else f"FAIL ({len(self.failures)} records)"
        return (f"{status}: {self.total} records, {self.fired} fired, "
                f"{self.dont_care} don't care, min margin {self.min_margin:.1f}")


def winning_margins(logits: torch.Tensor) -> torch.Tensor:
    """Top logit minus runner-up logit, per row."""
    top2 = torch.topk(logits, 2, dim=1).values
    return top2[:, 0] - top2[:, 1]


def verify_network(network: LookupNetwork, vocabulary: Vocabulary,
                   min_margin: float = CALIBRATION_PARAMS['MIN_MARGIN'],
                   key_mass_tolerance: float = 1e-6) -> VerificationReport:
    """
    Run every record of the domain through ``network``.

    A record fails if a fired branch predicts the wrong token or wins by
    less than ``min_margin``, or if a don't-care record predicts a key
    token or assigns more than ``key_mass_tolerance`` to key tokens.
    """
    records = list(enumerate_records(vocabulary))
    logits = network.logits(records)
    probs = torch.softmax(logits, dim=1)
    predictions = (probs.argmax(dim=1) + 1).tolist()
    margins = winning_margins(logits)
    key_indices = [t.index for t in vocabulary.key_tokens]
    key_mass = probs[:, key_indices].sum(dim=1)

    report = VerificationReport(total=len(records))
    for i, record in enumerate(records):
        expected = record.expected()
        report.max_key_mass = max(report.max_key_mass, float(key_mass[i]))
        if expected is None:
            report.dont_care += 1
            if not vocabulary.is_value(predictions[i]) or float(key_mass[i]) > key_mass_tolerance:
                report.failures.append((record, None, predictions[i]))
            continue
        report.fired += 1
        report.min_margin = min(report.min_margin, float(margins[i]))
        if predictions[i] != expected or float(margins[i]) < min_margin:
            report.failures.append((record, expected, predictions[i]))

    if report.passed:
        logger.info("Verification %s", report)
    else:
        logger.warning("Verification %s", report)
    return report
