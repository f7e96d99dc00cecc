"""A full team run: planning, translation, reasoning, knowledge and evolution.

Run with the default in-memory strategy store:

    uv run python -m examples.reasoning_team.run

Persist learned strategies between runs:

    STRATEGY_STORE_PATH=.strategies uv run python -m examples.reasoning_team.run

Quieter output (errors are always printed):

    COGNIVERSE_QUIET=1 uv run python -m examples.reasoning_team.run --seed 7
"""

from __future__ import annotations

import argparse
import asyncio
import json
import random

from cogniverse import build_system
from cogniverse.config import Config
from cogniverse.schemas import (
    EvolutionMetadata,
    Format,
    KnowledgeMetadata,
    TaskStatus,
    TranslationMetadata,
)

PREMISES = """
(ImplicationLink (ConceptNode "rain") (ConceptNode "wet-ground") (stv 0.9 0.8))
(ImplicationLink (ConceptNode "wet-ground") (ConceptNode "slippery") (stv 0.8 0.7))
(ImplicationLink (ConceptNode "slippery") (ConceptNode "accident-risk") (stv 0.6 0.6))
"""

FACTS = [
    '(InheritanceLink (ConceptNode "cat") (ConceptNode "mammal"))',
    '(InheritanceLink (ConceptNode "mammal") (ConceptNode "animal"))',
]


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Cogniverse reasoning team demo")
    parser.add_argument("--request", default="Assess road safety after rain")
    parser.add_argument("--generations", type=int, default=10)
    parser.add_argument("--seed", type=int, default=None)
    return parser.parse_args()


async def run_team(request: str, generations: int, seed: int | None) -> None:
    print(Config.display())
    system = await build_system(rng=random.Random(seed))
    orchestrator = system.orchestrator

    try:
        plan = json.loads(await orchestrator.process_request(request))
        print("\nPlan:")
        for step in plan["subtasks"]:
            print(f"  - {step}")

        translate = await orchestrator.create_task(
            FACTS[0],
            capability="atomese-to-metta",
            context=TranslationMetadata(source_format=Format.ATOMESE, target_format=Format.METTA),
        )
        store_tasks = [
            await orchestrator.create_task(
                fact, capability="add-knowledge", context=KnowledgeMetadata(operation="add")
            )
            for fact in FACTS
        ]
        reason = await orchestrator.create_task(PREMISES, capability="deduction")
        evolve = await orchestrator.create_task(
            "y = x^2 + x",
            capability="program-evolution",
            context=EvolutionMetadata(generations=generations),
        )

        for task in [translate, *store_tasks, reason, evolve]:
            finished = await orchestrator.wait_for_task(task.id, timeout=Config.REQUEST_TIMEOUT_SECONDS)
            marker = "ok" if finished.status == TaskStatus.COMPLETED else finished.status.value
            print(f"\n[{marker}] {finished.required_capability}")
            print(f"  {finished.result}")

        lookup = await orchestrator.create_task(
            "mammal", capability="query-atomspace", context=KnowledgeMetadata(operation="query")
        )
        found = await orchestrator.wait_for_task(lookup.id, timeout=Config.REQUEST_TIMEOUT_SECONDS)
        print(f"\nFacts mentioning 'mammal': {json.loads(found.result)['result']}")

        await orchestrator.join()
        print("\nLearned strategies:")
        for role, learner in system.learners.items():
            for strategy in learner.get_top_strategies(1):
                print(
                    f"  {role.value:<18} {strategy.action:<16} "
                    f"success={strategy.success_rate:.2f} uses={strategy.use_count}"
                )
    finally:
        await system.close()


if __name__ == "__main__":
    args = parse_args()
    asyncio.run(run_team(args.request, args.generations, args.seed))
