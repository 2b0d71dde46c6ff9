import logging
import random
import time
from typing import Callable, Dict, List, Optional, Sequence

from .config import Constraints, GenerationConfig
from .domains import build_problem_domain
from .evaluation import evaluate_chromosome, index_slots
from .initial_population import build_initial_population, build_repaired_population
from .model import Chromosome, CourseSession, Room, TimeSlot
from .operators import (
    fitness_key,
    mutate,
    repair_chromosome,
    single_point_crossover,
    tournament_selection,
    validity_first_key,
)

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[Dict], None]


class GeneticOptimizer:
    """AG base: población aleatoria, penalización fuerte por choques duros."""

    HARD_WEIGHT = 1000
    LOG_EVERY = 50

    def __init__(
        self,
        time_slots: Sequence[TimeSlot],
        sessions: Sequence[CourseSession],
        rooms: Sequence[Room],
        constraints: Constraints,
        config: Optional[GenerationConfig] = None,
        progress_callback: Optional[ProgressCallback] = None,
        rng: Optional[random.Random] = None,
    ):
        self.cfg = config or GenerationConfig()
        self.constraints = constraints
        self.domain = build_problem_domain(time_slots, sessions, rooms, constraints)
        self.slots_by_id = index_slots(time_slots)
        self.rooms_by_id = {r.id: r for r in rooms}
        self.progress_callback = progress_callback
        self.rng = rng or random.Random(self.cfg.seed)
        self.history: List[Dict] = []
        self.best: Optional[Chromosome] = None

    rank_key = staticmethod(fitness_key)

    # --- Ganchos que la variante con reparación redefine ---

    def _initial_population(self) -> List[Chromosome]:
        return build_initial_population(self.domain, self.cfg.population_size, self.rng)

    def _after_offspring(self, child: Chromosome) -> Chromosome:
        return child

    def _elites(self, population: List[Chromosome]) -> List[Chromosome]:
        return [c.copy() for c in population[: self.cfg.elitism_count]]

    def _update_best(self, population: List[Chromosome]) -> bool:
        top = population[0]
        if self.best is None or top.fitness < self.best.fitness:
            self.best = top.copy()
            return True
        return False

    def _should_stop(self, stagnation: int) -> bool:
        return stagnation >= self.cfg.max_stagnation

    # --- Bucle evolutivo ---

    def evaluate(self, ch: Chromosome) -> Chromosome:
        return evaluate_chromosome(ch, self.slots_by_id, self.constraints, self.HARD_WEIGHT, self.rooms_by_id)

    def select(self, population: List[Chromosome]) -> Chromosome:
        return tournament_selection(population, self.rng, self.cfg.tournament_size, self.rank_key)

    def optimize(self) -> Optional[Chromosome]:
        cfg = self.cfg
        self.history = []
        self.best = None
        deadline = time.monotonic() + cfg.time_limit_seconds if cfg.time_limit_seconds is not None else None

        population = self._initial_population()
        if not population:
            logger.info("%s: could not build any individual", type(self).__name__)
            return None
        logger.info("%s: population of %d, up to %d generations", type(self).__name__, len(population), cfg.generations)

        stagnation = 0
        for gen in range(cfg.generations):
            if deadline is not None and time.monotonic() >= deadline:
                logger.info("Time limit reached at generation %d, discarding run", gen)
                return None

            for ch in population:
                self.evaluate(ch)
            population.sort(key=self.rank_key)

            if self._update_best(population):
                stagnation = 0
            else:
                stagnation += 1

            entry = {
                "gen": gen,
                "best_fitness": self.best.fitness if self.best else None,
                "avg_fitness": sum(c.fitness for c in population) / len(population),
                "valid_count": sum(1 for c in population if c.is_valid),
            }
            self.history.append(entry)
            if self.progress_callback is not None:
                self.progress_callback(entry)
            if gen % self.LOG_EVERY == 0:
                logger.debug("Gen %d: best=%s avg=%.2f valid=%d", gen, entry["best_fitness"], entry["avg_fitness"], entry["valid_count"])

            if self._should_stop(stagnation):
                logger.info("Early stopping at generation %d", gen)
                break
            if gen == cfg.generations - 1:
                break  # la última generación no se reproduce

            next_gen = self._elites(population)
            while len(next_gen) < cfg.population_size:
                p1 = self.select(population)
                p2 = self.select(population)
                if self.rng.random() < cfg.crossover_rate:
                    child = single_point_crossover(p1, p2, self.rng)
                else:
                    child = p1.copy()
                if self.rng.random() < cfg.mutation_rate:
                    child = mutate(child, self.domain, self.rng, cfg.mutation_fraction)
                next_gen.append(self._after_offspring(child))
            population = next_gen

        if self.best is not None:
            logger.info("Optimization complete, best fitness %.2f (valid=%s)", self.best.fitness, self.best.is_valid)
        return self.best


class RepairingGeneticOptimizer(GeneticOptimizer):
    """
    AG con reparación explícita. Lleva una bandera de validez por individuo,
    repara al sembrar y con probabilidad `repair_probability` a cada hijo
    inválido, y ordena siempre válidos primero. Solo devuelve soluciones
    válidas.
    """

    HARD_WEIGHT = 10000

    rank_key = staticmethod(validity_first_key)

    def repair(self, ch: Chromosome) -> Chromosome:
        return repair_chromosome(ch, self.domain)

    def _initial_population(self) -> List[Chromosome]:
        population = build_repaired_population(
            self.domain, self.cfg.population_size, self.rng, self.repair, self.cfg.seeding_attempts
        )
        logger.info("Valid individuals in initial population: %d/%d",
                    sum(1 for c in population if c.is_valid), len(population))
        return population

    def _after_offspring(self, child: Chromosome) -> Chromosome:
        self.evaluate(child)
        if not child.is_valid and self.rng.random() < self.cfg.repair_probability:
            child = self.repair(child)
        return child

    def _elites(self, population: List[Chromosome]) -> List[Chromosome]:
        valid = [c for c in population if c.is_valid]
        return [c.copy() for c in valid[: self.cfg.elitism_count]]

    def _update_best(self, population: List[Chromosome]) -> bool:
        valid = [c for c in population if c.is_valid]
        if not valid:
            return False
        top = valid[0]
        if self.best is None or top.fitness < self.best.fitness:
            self.best = top.copy()
            return True
        return False

    def _should_stop(self, stagnation: int) -> bool:
        # Sin ninguna válida se sigue hasta el tope de generaciones
        return self.best is not None and stagnation >= self.cfg.max_stagnation
