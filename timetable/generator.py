"""
Generador integrado de horarios.

Elige la estrategia (solver de restricciones, AG con reparación o híbrido),
normaliza el resultado en un único sobre (`TimetableResult`), permite varias
corridas ordenadas por fitness y expone un validador independiente para
cualquier lista de asignaciones.
"""
import logging
import random
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict, dataclass, field, replace
from typing import Dict, List, Optional, Sequence

from .config import Constraints, GenerationConfig
from .domains import check_feasibility
from .evaluation import (
    count_back_to_back_labs,
    count_lunch_violations,
    index_slots,
    solution_stats,
)
from .ga import ProgressCallback, RepairingGeneticOptimizer
from .model import Assignment, CourseSession, Room, TimeSlot
from .solver import ConstraintSolver

logger = logging.getLogger(__name__)


@dataclass
class TimetableStatistics:
    total_assignments: int = 0
    fitness_score: float = 0.0
    lunch_violations: int = 0
    back_to_back_labs: int = 0
    afternoon_theory: int = 0
    workload_imbalance: float = 0.0
    total_gaps: int = 0
    teacher_utilization: Dict[int, int] = field(default_factory=dict)
    room_utilization: Dict[int, int] = field(default_factory=dict)


@dataclass
class TimetableResult:
    success: bool
    assignments: List[Assignment] = field(default_factory=list)
    statistics: TimetableStatistics = field(default_factory=TimetableStatistics)
    approach: str = "none"
    execution_time_ms: float = 0.0
    issues: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass
class ValidationReport:
    valid: bool
    errors: List[str]
    warnings: List[str]


def _failed(approach: str, issues: Optional[List[str]] = None) -> TimetableResult:
    return TimetableResult(success=False, approach=approach, issues=list(issues or []))


class IntegratedTimetableGenerator:
    def __init__(
        self,
        time_slots: Sequence[TimeSlot],
        sessions: Sequence[CourseSession],
        rooms: Sequence[Room],
        constraints: Optional[Constraints] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ):
        self.time_slots = list(time_slots)
        self.sessions = list(sessions)
        self.rooms = list(rooms)
        self.constraints = constraints or Constraints()
        self.progress_callback = progress_callback
        self.slots_by_id = index_slots(self.time_slots)
        self.rooms_by_id = {r.id: r for r in self.rooms}

    # --- Estrategias ---

    def _success(self, assignments: List[Assignment], approach: str) -> TimetableResult:
        stats = solution_stats(assignments, self.slots_by_id, self.constraints)
        return TimetableResult(
            success=True,
            assignments=assignments,
            statistics=TimetableStatistics(**asdict(stats)),
            approach=approach,
        )

    def _run_constraint(self, cfg: GenerationConfig, max_iterations: int) -> TimetableResult:
        solver = ConstraintSolver(
            self.time_slots, self.sessions, self.rooms, self.constraints,
            max_iterations=max_iterations, time_limit_seconds=cfg.time_limit_seconds,
        )
        assignments = solver.solve()
        if assignments is None:
            return _failed("constraint", [f"No solution found within {max_iterations} iterations"])
        return self._success(assignments, "constraint")

    def _run_genetic(self, cfg: GenerationConfig, rng: Optional[random.Random] = None) -> TimetableResult:
        optimizer = RepairingGeneticOptimizer(
            self.time_slots, self.sessions, self.rooms, self.constraints,
            config=cfg, progress_callback=self.progress_callback, rng=rng,
        )
        best = optimizer.optimize()
        if best is None:
            return _failed("genetic", ["Genetic optimizer found no valid timetable"])
        return self._success(best.assignments, "genetic")

    def _run_hybrid(self, cfg: GenerationConfig, rng: Optional[random.Random] = None) -> TimetableResult:
        logger.info("Hybrid step 1: constraint solver with %d iterations", cfg.hybrid_max_iterations)
        seed_result = self._run_constraint(cfg, cfg.hybrid_max_iterations)
        if not seed_result.success:
            logger.info("Constraint step failed, falling back to genetic only")
            return self._run_genetic(cfg, rng)

        logger.info("Hybrid step 2: genetic optimization")
        ga_cfg = replace(cfg, generations=min(cfg.generations, cfg.hybrid_generations))
        ga_result = self._run_genetic(ga_cfg, rng)

        if ga_result.success and ga_result.statistics.fitness_score < seed_result.statistics.fitness_score:
            logger.info("Genetic optimization improved the solution")
            return replace(ga_result, approach="hybrid")
        return replace(seed_result, approach="hybrid")

    def generate(self, config: Optional[GenerationConfig] = None, rng: Optional[random.Random] = None) -> TimetableResult:
        cfg = config or GenerationConfig()
        cfg.validate()
        logger.info("Starting timetable generation with %s approach", cfg.approach)
        start = time.perf_counter()

        issues = check_feasibility(self.time_slots, self.sessions, self.rooms, self.constraints)
        if issues:
            for msg in issues:
                logger.warning("Infeasible input: %s", msg)
            result = _failed(cfg.approach, issues)
        elif not self.sessions:
            result = self._success([], cfg.approach)
        elif cfg.approach == "constraint":
            result = self._run_constraint(cfg, cfg.max_iterations)
        elif cfg.approach == "genetic":
            result = self._run_genetic(cfg, rng)
        else:
            result = self._run_hybrid(cfg, rng)

        result.execution_time_ms = (time.perf_counter() - start) * 1000.0
        logger.info("Generation finished in %.1f ms (success=%s)", result.execution_time_ms, result.success)
        return result

    def generate_multiple_solutions(
        self,
        count: int,
        config: Optional[GenerationConfig] = None,
        max_workers: int = 1,
    ) -> List[TimetableResult]:
        """Corre `count` intentos independientes y devuelve los exitosos, mejor primero."""
        cfg = config or GenerationConfig()
        cfg.validate()
        rngs = [
            random.Random(cfg.seed + i) if cfg.seed is not None else random.Random()
            for i in range(count)
        ]

        if max_workers > 1 and count > 1:
            with ThreadPoolExecutor(max_workers=max_workers) as pool:
                results = list(pool.map(lambda r: self.generate(cfg, r), rngs))
        else:
            results = [self.generate(cfg, r) for r in rngs]

        ok = [r for r in results if r.success]
        ok.sort(key=lambda r: r.statistics.fitness_score)
        logger.info("Generated %d/%d successful solutions", len(ok), count)
        return ok

    # --- Validación ---

    def validate_solution(self, assignments: Sequence[Assignment]) -> ValidationReport:
        return validate_solution(assignments, self.constraints, self.time_slots, self.rooms)


def _grouped(assignments: Sequence[Assignment], key) -> List[List[Assignment]]:
    groups: Dict = {}
    for a in assignments:
        groups.setdefault(key(a), []).append(a)
    return [g for g in groups.values() if len(g) > 1]


def validate_solution(
    assignments: Sequence[Assignment],
    constraints: Optional[Constraints] = None,
    time_slots: Sequence[TimeSlot] = (),
    rooms: Sequence[Room] = (),
) -> ValidationReport:
    """
    Re-deriva los choques duros de una lista arbitraria de asignaciones y
    devuelve mensajes legibles: errores para conflictos, advertencias para
    restricciones blandas.
    """
    constraints = constraints or Constraints()
    errors: List[str] = []
    warnings: List[str] = []

    for group in _grouped(assignments, lambda a: (a.teacher_id, a.time_slot_id)):
        a = group[0]
        errors.append(f"Teacher {a.teacher_name} has {len(group)} classes at the same time ({a.day} {a.start_time})")

    for group in _grouped(assignments, lambda a: (a.room_id, a.time_slot_id)):
        a = group[0]
        errors.append(f"Room {a.room_name} has {len(group)} classes at the same time ({a.day} {a.start_time})")

    for group in _grouped(assignments, lambda a: (a.semester, a.section, a.time_slot_id)):
        a = group[0]
        errors.append(
            f"Semester {a.semester} Section {a.section} has {len(group)} classes at the same time ({a.day} {a.start_time})"
        )

    rooms_by_id = {r.id: r for r in rooms} if constraints.hard.respect_session_room_type else {}
    for a in assignments:
        room = rooms_by_id.get(a.room_id)
        if room is not None and not room.supports(a.session_type):
            errors.append(f"{a.course_name} ({a.session_type}) is in {room.name}, which is not a {a.session_type} room")

    cap = constraints.hard.max_teacher_hours_per_day
    if cap > 0:
        per_day: Dict = {}
        for a in assignments:
            per_day.setdefault((a.teacher_id, a.day), []).append(a)
        for (_, day), items in per_day.items():
            if len(items) > cap:
                errors.append(f"Teacher {items[0].teacher_name} has {len(items)} classes on {day}, limit is {cap}")

    if constraints.soft.lunch_break_mandatory and constraints.lunch_break is not None:
        lunch = count_lunch_violations(assignments, constraints)
        if lunch:
            warnings.append(f"{lunch} classes scheduled during lunch break")

    if constraints.soft.avoid_back_to_back_labs and time_slots:
        b2b = count_back_to_back_labs(assignments, index_slots(time_slots))
        if b2b:
            warnings.append(f"{b2b} back-to-back lab pairs for the same teacher")

    return ValidationReport(valid=not errors, errors=errors, warnings=warnings)
