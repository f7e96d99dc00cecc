"""Engines without the orchestrator: derive with PLN, then let ECAN settle.

    uv run python -m examples.attention.run --steps 20

Stimulates one premise and prints how importance diffuses over the
derived knowledge, tick by tick.
"""

from __future__ import annotations

import argparse

from cogniverse import atomese
from cogniverse.reasoning import ECANEngine, ImportanceDiffusion, PLNReasoner

PREMISES = """
(ImplicationLink (ConceptNode "smoke") (ConceptNode "fire") (stv 0.85 0.9))
(ImplicationLink (ConceptNode "fire") (ConceptNode "danger") (stv 0.95 0.9))
(ImplicationLink (ConceptNode "danger") (ConceptNode "evacuate") (stv 0.9 0.8))
"""


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="PLN + ECAN walkthrough")
    parser.add_argument("--steps", type=int, default=10)
    parser.add_argument("--stimulus", type=float, default=80.0)
    return parser.parse_args()


def main(steps: int, stimulus: float) -> None:
    premises = atomese.parse_many(PREMISES)
    result = PLNReasoner().reason(premises)

    print(f"Derived {len(result.derived)} conclusions (confidence {result.confidence:.3f}):")
    for node in result.derived:
        print(f"  {atomese.generate(node)}")

    ecan = ECANEngine()
    for node in [*premises, *result.derived]:
        ecan.add_node(atomese.node_key(node), node)

    diffusion = ImportanceDiffusion(ecan)
    diffusion.focus_on([atomese.node_key(premises[0])], intensity=stimulus)

    for tick in range(1, steps + 1):
        diffusion.diffuse(steps=1)
        top = ecan.get_top_nodes(3)
        summary = ", ".join(f"{key[:32]}={av.sti:.1f}" for key, av in top)
        print(f"tick {tick:>3}: {summary}")

    stats = ecan.get_statistics()
    print(
        f"\nFocus size {len(ecan.get_attentional_focus())}, "
        f"total STI {stats.total_sti:.1f} over {stats.total_nodes} nodes"
    )


if __name__ == "__main__":
    args = parse_args()
    main(args.steps, args.stimulus)
