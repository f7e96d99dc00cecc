"""Reasoning strategies: truth-value algebra, PLN, ECAN and MOSES.

All engines are synchronous, CPU-bound and single-owner: give each caller
its own instance.
"""

from .truth import (
    revision,
    deduction,
    induction,
    abduction,
    conjunction,
    disjunction,
    negation,
)
from .pln import PLNForwardChainer, PLNReasoner
from .ecan import (
    AFB_THRESHOLD,
    FORGETTING_THRESHOLD,
    ECANEngine,
    ImportanceDiffusion,
)
from .moses import (
    MOSESEngine,
    MosesConfig,
    ProgramBuilder,
    FitnessFunction,
    evaluate_program,
    make_regression_fitness,
)

__all__ = [
    "revision",
    "deduction",
    "induction",
    "abduction",
    "conjunction",
    "disjunction",
    "negation",
    "PLNForwardChainer",
    "PLNReasoner",
    "AFB_THRESHOLD",
    "FORGETTING_THRESHOLD",
    "ECANEngine",
    "ImportanceDiffusion",
    "MOSESEngine",
    "MosesConfig",
    "ProgramBuilder",
    "FitnessFunction",
    "evaluate_program",
    "make_regression_fitness",
]
