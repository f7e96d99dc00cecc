"""
Evolutionary program search (MOSES-style).

Maintains a population of program trees and evolves them against a
caller-supplied fitness function:

- Elitism carries the top candidates forward unchanged, so the best fitness
  never regresses
- Remaining slots are filled by subtree crossover or point mutation of
  tournament-selected parents
- A fitness function that raises or returns a non-finite value scores that
  candidate 0; evolution goes on
"""

from __future__ import annotations

import math
import operator
import random
from typing import Callable, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field, model_validator

from cogniverse.logging_utils import log_deterministic, log_error
from cogniverse.schemas import Candidate, EvolutionStatistics, ProgramNode

FitnessFunction = Callable[[ProgramNode], float]
ProgramGenerator = Callable[[], ProgramNode]

FUNCTION_SYMBOLS = ["+", "-", "*", "/", "if", "and", "or"]
ARITHMETIC_SYMBOLS = ["+", "-", "*", "/"]


class MosesConfig(BaseModel):
    population_size: int = Field(100, ge=1)
    max_generations: int = Field(50, ge=1)
    mutation_rate: float = Field(0.1, ge=0.0, le=1.0)
    crossover_rate: float = Field(0.7, ge=0.0, le=1.0)
    elitism_count: int = Field(5, ge=0)
    tournament_size: int = Field(3, ge=1)

    @model_validator(mode="after")
    def _check_elitism(self) -> "MosesConfig":
        if self.elitism_count > self.population_size:
            raise ValueError("elitism_count cannot exceed population_size")
        return self


class MOSESEngine:
    """Population-based evolutionary search over ProgramNode trees."""

    def __init__(
        self,
        fitness_function: FitnessFunction,
        config: Optional[MosesConfig] = None,
        *,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.config = config or MosesConfig()
        self.fitness_function = fitness_function
        self.rng = rng or random.Random()
        self.population: List[Candidate] = []
        self.generation = 0
        self.best_candidate: Optional[Candidate] = None

    def set_fitness_function(self, fitness_function: FitnessFunction) -> None:
        self.fitness_function = fitness_function

    def initialize_population(self, generate_initial: ProgramGenerator) -> None:
        """Create and evaluate ``population_size`` programs at generation 0."""
        self.population = []
        self.generation = 0
        self.best_candidate = None

        for _ in range(self.config.population_size):
            program = generate_initial()
            self.population.append(
                Candidate(program=program, fitness=self._evaluate(program), generation=0)
            )

        self._update_best()
        log_deterministic(f"[MOSES] Initialized population of {len(self.population)} candidates")

    def evolve(self, generations: Optional[int] = None) -> Candidate:
        """Run ``generations`` generations (default ``max_generations``) and return the best."""
        if not self.population:
            raise ValueError("Population is empty; call initialize_population() first")

        if generations is None:
            generations = self.config.max_generations

        for _ in range(generations):
            self.evolve_generation()
            if self.generation % 10 == 0:
                log_deterministic(
                    f"[MOSES] Generation {self.generation}: "
                    f"best fitness = {self.best_candidate.fitness:.4f}"
                )

        return self.best_candidate

    def evolve_generation(self) -> None:
        """Produce the next population from the current one."""
        self.generation += 1

        ranked = sorted(self.population, key=lambda c: c.fitness, reverse=True)
        new_population: List[Candidate] = ranked[: self.config.elitism_count]

        while len(new_population) < self.config.population_size:
            if self.rng.random() < self.config.crossover_rate:
                first = self.select_parent()
                second = self.select_parent()
                program = self.crossover(first.program, second.program)
            else:
                program = self.mutate(self.select_parent().program)

            new_population.append(
                Candidate(
                    program=program,
                    fitness=self._evaluate(program),
                    generation=self.generation,
                )
            )

        self.population = new_population
        self._update_best()

    def select_parent(self) -> Candidate:
        """Tournament selection: fittest of ``tournament_size`` uniform draws."""
        contestants = [
            self.rng.choice(self.population) for _ in range(self.config.tournament_size)
        ]
        return max(contestants, key=lambda c: c.fitness)

    def crossover(self, parent1: ProgramNode, parent2: ProgramNode) -> ProgramNode:
        """Replace a random subtree of a copy of ``parent1`` with one from ``parent2``."""
        offspring = parent1.model_copy(deep=True)
        donor = self.rng.choice(_collect_nodes(parent2.model_copy(deep=True)))

        slots = _collect_slots(offspring)
        slot_index = self.rng.randrange(len(slots) + 1)
        if slot_index == len(slots):
            # Root chosen: the donor subtree becomes the whole offspring
            return donor

        parent, child_index = slots[slot_index]
        parent.children[child_index] = donor
        return offspring

    def mutate(self, program: ProgramNode) -> ProgramNode:
        """Copy ``program`` and perturb each node with probability ``mutation_rate``."""
        mutated = program.model_copy(deep=True)
        self._mutate_in_place(mutated)
        return mutated

    def _mutate_in_place(self, node: ProgramNode) -> None:
        if self.rng.random() < self.config.mutation_rate:
            if node.type == "terminal" and isinstance(node.value, (int, float)):
                node.value = float(node.value) + self.rng.uniform(-1.0, 1.0)
            elif node.type == "function":
                node.value = self.rng.choice(FUNCTION_SYMBOLS)

        for child in node.children:
            self._mutate_in_place(child)

    def get_population(self) -> List[Candidate]:
        return list(self.population)

    def get_best(self) -> Optional[Candidate]:
        return self.best_candidate

    def get_generation(self) -> int:
        return self.generation

    def get_statistics(self) -> EvolutionStatistics:
        size = len(self.population)
        if size == 0:
            return EvolutionStatistics(
                generation=self.generation,
                population_size=0,
                best_fitness=0.0,
                average_fitness=0.0,
                diversity_score=0.0,
            )

        # Diversity: distinct fitness values over population size
        distinct = len({c.fitness for c in self.population})
        return EvolutionStatistics(
            generation=self.generation,
            population_size=size,
            best_fitness=self.best_candidate.fitness if self.best_candidate else 0.0,
            average_fitness=sum(c.fitness for c in self.population) / size,
            diversity_score=distinct / size,
        )

    def reset(self) -> None:
        self.population = []
        self.generation = 0
        self.best_candidate = None

    def _evaluate(self, program: ProgramNode) -> float:
        try:
            fitness = float(self.fitness_function(program))
        except Exception as exc:  # fitness functions are caller code
            log_error(f"[MOSES] Fitness evaluation error: {exc}")
            return 0.0
        if not math.isfinite(fitness):
            log_error(f"[MOSES] Non-finite fitness {fitness}; scoring 0")
            return 0.0
        return fitness

    def _update_best(self) -> None:
        if not self.population:
            return
        best = max(self.population, key=lambda c: c.fitness)
        if self.best_candidate is None or best.fitness > self.best_candidate.fitness:
            self.best_candidate = best


def _collect_nodes(program: ProgramNode) -> List[ProgramNode]:
    nodes = [program]
    for child in program.children:
        nodes.extend(_collect_nodes(child))
    return nodes


def _collect_slots(program: ProgramNode) -> List[Tuple[ProgramNode, int]]:
    """Every (parent, child index) position below the root."""
    slots: List[Tuple[ProgramNode, int]] = []
    for index, child in enumerate(program.children):
        slots.append((program, index))
        slots.extend(_collect_slots(child))
    return slots


class ProgramBuilder:
    """Helpers for building program trees."""

    @staticmethod
    def constant(value: float) -> ProgramNode:
        return ProgramNode(type="terminal", value=float(value))

    @staticmethod
    def variable(name: str) -> ProgramNode:
        return ProgramNode(type="variable", value=name)

    @staticmethod
    def func(name: str, *args: ProgramNode) -> ProgramNode:
        return ProgramNode(type="function", value=name, children=list(args))

    @classmethod
    def random_program(
        cls,
        max_depth: int,
        rng: Optional[random.Random] = None,
        variables: Tuple[str, ...] = ("x0", "x1", "x2"),
    ) -> ProgramNode:
        rng = rng or random.Random()
        if max_depth == 0 or rng.random() < 0.3:
            if rng.random() < 0.5:
                return cls.constant(rng.uniform(-5.0, 5.0))
            return cls.variable(rng.choice(variables))

        symbol = rng.choice(ARITHMETIC_SYMBOLS)
        return cls.func(
            symbol,
            cls.random_program(max_depth - 1, rng, variables),
            cls.random_program(max_depth - 1, rng, variables),
        )


def _protected_div(left: float, right: float) -> float:
    return left / right if right != 0 else 1.0


_OPERATORS: Dict[str, Callable[[float, float], float]] = {
    "+": operator.add,
    "-": operator.sub,
    "*": operator.mul,
    "/": _protected_div,
    "and": lambda a, b: float(bool(a) and bool(b)),
    "or": lambda a, b: float(bool(a) or bool(b)),
}


def evaluate_program(program: ProgramNode, variables: Dict[str, float]) -> float:
    """Interpret a program tree.

    Division by zero yields 1.0. ``if`` takes (condition, then, else).
    Unknown variables raise KeyError, which MOSES scores as fitness 0.
    """
    if program.type == "terminal":
        return float(program.value)
    if program.type == "variable":
        return float(variables[str(program.value)])

    args = [evaluate_program(child, variables) for child in program.children]
    if program.value == "if":
        if len(args) != 3:
            raise ValueError("'if' expects 3 arguments")
        return args[1] if args[0] else args[2]

    function = _OPERATORS.get(str(program.value))
    if function is None:
        raise ValueError(f"Unknown function symbol: {program.value}")
    if not args:
        raise ValueError(f"Function {program.value!r} has no arguments")

    result = args[0]
    for arg in args[1:]:
        result = function(result, arg)
    return result


def make_regression_fitness(
    samples: List[Tuple[Dict[str, float], float]],
) -> FitnessFunction:
    """Fitness for symbolic regression: ``1 / (1 + mean absolute error)`` over ``samples``.

    Each sample is ``(variables, expected)``. Scores lie in (0, 1]; 1 is an exact fit.
    """
    if not samples:
        raise ValueError("samples must not be empty")

    def fitness(program: ProgramNode) -> float:
        error = sum(
            abs(evaluate_program(program, variables) - expected)
            for variables, expected in samples
        )
        if not math.isfinite(error):
            return 0.0
        return 1.0 / (1.0 + error / len(samples))

    return fitness
