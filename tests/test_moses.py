"""Tests for MOSES evolutionary program search."""

import random

import pytest
from pydantic import ValidationError

from cogniverse.reasoning.moses import (
    FUNCTION_SYMBOLS,
    MOSESEngine,
    MosesConfig,
    ProgramBuilder,
    evaluate_program,
    make_regression_fitness,
)

B = ProgramBuilder


def random_generator(rng: random.Random):
    return lambda: B.random_program(3, rng, ("x",))


def test_constant_fitness_converges_immediately():
    rng = random.Random(7)
    engine = MOSESEngine(lambda program: 1.0, MosesConfig(elitism_count=5), rng=rng)
    engine.initialize_population(random_generator(rng))

    best = engine.evolve(1)

    assert engine.get_generation() == 1
    assert best.fitness == 1.0
    stats = engine.get_statistics()
    assert stats.population_size == 100
    assert stats.diversity_score == pytest.approx(0.01)
    assert stats.average_fitness == 1.0


def test_best_fitness_never_decreases():
    rng = random.Random(42)
    samples = [({"x": float(x)}, float(2 * x + 1)) for x in range(-2, 3)]
    engine = MOSESEngine(
        make_regression_fitness(samples),
        MosesConfig(population_size=30, elitism_count=2),
        rng=rng,
    )
    engine.initialize_population(random_generator(rng))

    history = [engine.get_best().fitness]
    for _ in range(15):
        engine.evolve_generation()
        history.append(engine.get_best().fitness)

    assert history == sorted(history)
    assert all(0.0 < value <= 1.0 for value in history)


def test_elites_survive_unchanged():
    rng = random.Random(3)
    engine = MOSESEngine(
        lambda program: float(program.value) if program.type == "terminal" else 0.0,
        MosesConfig(population_size=10, elitism_count=3),
        rng=rng,
    )
    values = iter(range(10))
    engine.initialize_population(lambda: B.constant(next(values)))

    engine.evolve_generation()

    survivors = sorted(
        (c.fitness for c in engine.get_population() if c.generation == 0), reverse=True
    )
    assert survivors[:3] == [9.0, 8.0, 7.0]


def test_failing_fitness_scores_zero():
    def explode(program):
        raise RuntimeError("boom")

    rng = random.Random(1)
    engine = MOSESEngine(explode, MosesConfig(population_size=5, elitism_count=1), rng=rng)
    engine.initialize_population(random_generator(rng))
    best = engine.evolve(2)

    assert best.fitness == 0.0
    assert all(c.fitness == 0.0 for c in engine.get_population())


def test_non_finite_fitness_scores_zero():
    scores = iter([float("nan"), float("inf")])

    def fitness(program):
        return next(scores, 1.0)

    rng = random.Random(4)
    engine = MOSESEngine(fitness, MosesConfig(population_size=5, elitism_count=1), rng=rng)
    engine.initialize_population(random_generator(rng))

    assert sorted(c.fitness for c in engine.get_population()) == [0.0, 0.0, 1.0, 1.0, 1.0]
    assert engine.evolve(3).fitness == 1.0


def test_zero_generations_runs_nothing():
    rng = random.Random(6)
    engine = MOSESEngine(lambda program: 1.0, MosesConfig(population_size=5, elitism_count=1), rng=rng)
    engine.initialize_population(random_generator(rng))

    engine.evolve(0)

    assert engine.get_generation() == 0


def test_evolve_requires_population():
    engine = MOSESEngine(lambda program: 0.0)
    with pytest.raises(ValueError):
        engine.evolve(1)


def test_config_rejects_elitism_above_population():
    with pytest.raises(ValidationError):
        MosesConfig(population_size=3, elitism_count=5)


def test_crossover_leaves_parents_untouched():
    rng = random.Random(5)
    engine = MOSESEngine(lambda program: 0.0, rng=rng)
    parent1 = B.func("+", B.variable("x"), B.constant(1))
    parent2 = B.func("*", B.constant(2), B.func("-", B.variable("x"), B.constant(3)))
    before1, before2 = parent1.model_copy(deep=True), parent2.model_copy(deep=True)

    for _ in range(20):
        engine.crossover(parent1, parent2)

    assert parent1 == before1
    assert parent2 == before2


def test_mutation_touches_every_level():
    rng = random.Random(9)
    engine = MOSESEngine(lambda program: 0.0, MosesConfig(mutation_rate=1.0), rng=rng)
    program = B.func("+", B.constant(1), B.func("*", B.constant(2), B.constant(3)))

    mutated = engine.mutate(program)

    assert program.children[1].children[1].value == 3.0
    assert mutated.children[0].value != 1.0
    assert mutated.children[1].children[1].value != 3.0
    assert mutated.value in FUNCTION_SYMBOLS
    assert mutated.children[1].value in FUNCTION_SYMBOLS


def test_reset_clears_state():
    rng = random.Random(2)
    engine = MOSESEngine(lambda program: 1.0, MosesConfig(population_size=5, elitism_count=1), rng=rng)
    engine.initialize_population(random_generator(rng))
    engine.evolve(1)

    engine.reset()

    assert engine.get_population() == []
    assert engine.get_best() is None
    assert engine.get_generation() == 0
    assert engine.get_statistics().population_size == 0


def test_evaluate_program_arithmetic():
    program = B.func("+", B.func("*", B.variable("x"), B.variable("x")), B.variable("x"))
    assert evaluate_program(program, {"x": 3.0}) == 12.0


def test_evaluate_program_protected_division():
    assert evaluate_program(B.func("/", B.constant(5), B.constant(0)), {}) == 1.0
    assert evaluate_program(B.func("/", B.constant(6), B.constant(3)), {}) == 2.0


def test_evaluate_program_conditionals():
    program = B.func("if", B.variable("c"), B.constant(1), B.constant(2))
    assert evaluate_program(program, {"c": 1.0}) == 1.0
    assert evaluate_program(program, {"c": 0.0}) == 2.0
    assert evaluate_program(B.func("and", B.constant(1), B.constant(0)), {}) == 0.0
    assert evaluate_program(B.func("or", B.constant(1), B.constant(0)), {}) == 1.0


def test_evaluate_program_errors():
    with pytest.raises(ValueError):
        evaluate_program(B.func("pow", B.constant(1), B.constant(2)), {})
    with pytest.raises(KeyError):
        evaluate_program(B.variable("y"), {"x": 1.0})


def test_regression_fitness_rewards_exact_fit():
    samples = [({"x": float(x)}, float(x + 1)) for x in range(3)]
    fitness = make_regression_fitness(samples)
    assert fitness(B.func("+", B.variable("x"), B.constant(1))) == 1.0
    assert fitness(B.constant(0)) < 1.0
