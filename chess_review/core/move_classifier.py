# chess_review/core/move_classifier.py
"""
Converts an evaluation swing into a discrete verdict.

The classifier is a pure function over integers: it only looks at the size
of the gap between the engine's best line and the line actually played, so a
swing of +N and -N always produce the same verdict.
"""
from typing import List, Optional, Tuple

from chess_review.config.settings import VerdictThresholdsModel
from chess_review.types import Verdict

_DEFAULT_THRESHOLDS = VerdictThresholdsModel()


def _ordered_thresholds(thresholds: VerdictThresholdsModel) -> List[Tuple[int, Verdict]]:
    """Returns (minimum |delta|, verdict) pairs, most severe first."""
    return [
        (thresholds.blunder, Verdict.BLUNDER),
        (thresholds.mistake, Verdict.MISTAKE),
        (thresholds.inaccuracy, Verdict.INACCURACY),
    ]


def classify_verdict(
    delta_cp: Optional[int], thresholds: Optional[VerdictThresholdsModel] = None
) -> Verdict:
    """
    Classifies a move by the evaluation it gave up.

    Args:
        delta_cp: Best-line evaluation minus played-line evaluation, both in
                  centipawns from the mover's perspective. `None` counts as zero.
        thresholds: Optional custom thresholds; the defaults are 200/80/30.

    Returns:
        The matching `Verdict`; anything below the inaccuracy threshold is `OKAY`.
    """
    magnitude = abs(delta_cp or 0)
    for minimum, verdict in _ordered_thresholds(thresholds or _DEFAULT_THRESHOLDS):
        if magnitude >= minimum:
            return verdict
    return Verdict.OKAY
