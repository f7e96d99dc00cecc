"""Truth-value algebra for probabilistic logic.

Pure functions over (strength, confidence) pairs. None of them clamp; the
TruthValue constructor does that.
"""

from __future__ import annotations

import math

from cogniverse.schemas import TruthValue

# Evidence weight constant for revision
REVISION_K = 1.0

# Confidence penalty applied to abductive chains
ABDUCTION_PENALTY = 0.8


def revision(tv1: TruthValue, tv2: TruthValue) -> TruthValue:
    """Combine two independent pieces of evidence about the same statement.

    Confidences are turned into odds weights ``w = c / (1 - c)``. A confidence
    of exactly 1 has infinite weight and raises ``ZeroDivisionError``; callers
    holding certain evidence must not revise it.
    """
    w1 = tv1.confidence / (1 - tv1.confidence)
    w2 = tv2.confidence / (1 - tv2.confidence)
    total = w1 + w2

    if total == 0:
        # No evidence on either side
        return TruthValue(strength=(tv1.strength + tv2.strength) / 2, confidence=0.0)

    strength = (w1 * tv1.strength + w2 * tv2.strength) / total
    confidence = total / (total + REVISION_K)
    return TruthValue(strength=strength, confidence=confidence)


def deduction(tv_ab: TruthValue, tv_bc: TruthValue) -> TruthValue:
    """A->B, B->C  =>  A->C. Low-strength chains lose confidence."""
    strength = tv_ab.strength * tv_bc.strength
    confidence = tv_ab.confidence * tv_bc.confidence * tv_ab.strength * tv_bc.strength
    return TruthValue(strength=strength, confidence=confidence)


def induction(tv_ab: TruthValue, n_a: float, n_b: float) -> TruthValue:
    """A->B  =>  B->A, scaled by the relative sizes of A and B."""
    strength = tv_ab.strength * (n_a / n_b)
    confidence = tv_ab.confidence * math.sqrt(n_a / (n_a + n_b))
    return TruthValue(strength=strength, confidence=confidence)


def abduction(tv_ab: TruthValue, tv_cb: TruthValue) -> TruthValue:
    """A->B, C->B  =>  A->C with a fixed penalty for the non-rigorous chain."""
    strength = tv_ab.strength * tv_cb.strength
    confidence = tv_ab.confidence * tv_cb.confidence * ABDUCTION_PENALTY
    return TruthValue(strength=strength, confidence=confidence)


def conjunction(tv1: TruthValue, tv2: TruthValue) -> TruthValue:
    return TruthValue(
        strength=tv1.strength * tv2.strength,
        confidence=tv1.confidence * tv2.confidence,
    )


def disjunction(tv1: TruthValue, tv2: TruthValue) -> TruthValue:
    # Probabilistic OR
    return TruthValue(
        strength=tv1.strength + tv2.strength - tv1.strength * tv2.strength,
        confidence=tv1.confidence * tv2.confidence,
    )


def negation(tv: TruthValue) -> TruthValue:
    return TruthValue(strength=1 - tv.strength, confidence=tv.confidence)


__all__ = [
    "REVISION_K",
    "ABDUCTION_PENALTY",
    "revision",
    "deduction",
    "induction",
    "abduction",
    "conjunction",
    "disjunction",
    "negation",
]
