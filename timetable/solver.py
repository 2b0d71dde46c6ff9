"""
Solver de restricciones para horarios.

Backtracking con forward checking: las sesiones se expanden, se ordenan
con la heurística MCV y se asignan una por una probando cada par
(slot, aula) de su dominio filtrado contra las asignaciones ya aceptadas.
"""
import logging
import time
from collections import Counter
from typing import Dict, Iterator, List, Optional, Sequence

from .config import Constraints
from .domains import SessionInstance, expand_sessions, sort_by_constraint_complexity, valid_rooms, valid_time_slots
from .evaluation import SolutionStats, index_slots, soft_penalty, solution_stats
from .model import Assignment, CourseSession, Room, TimeSlot

logger = logging.getLogger(__name__)


class ConstraintSolver:
    def __init__(
        self,
        time_slots: Sequence[TimeSlot],
        sessions: Sequence[CourseSession],
        rooms: Sequence[Room],
        constraints: Constraints,
        max_iterations: int = 10000,
        time_limit_seconds: Optional[float] = None,
    ):
        self.time_slots = list(time_slots)
        self.sessions = list(sessions)
        self.rooms = list(rooms)
        self.constraints = constraints
        self.max_iterations = max_iterations
        self.time_limit_seconds = time_limit_seconds

        self.slots_by_id = index_slots(self.time_slots)
        self.rooms_by_id: Dict[int, Room] = {r.id: r for r in self.rooms}

        self.iterations = 0
        self.backtracks = 0
        self._reset_state()

    def _reset_state(self) -> None:
        self.assignments: List[Assignment] = []
        self._teacher_slots: Counter = Counter()
        self._room_slots: Counter = Counter()
        self._group_slots: Counter = Counter()
        self._teacher_days: Counter = Counter()

    # --- Pila de asignaciones aceptadas ---

    def _push(self, a: Assignment) -> None:
        self.assignments.append(a)
        self._teacher_slots[(a.teacher_id, a.time_slot_id)] += 1
        self._room_slots[(a.room_id, a.time_slot_id)] += 1
        self._group_slots[(a.semester, a.section, a.time_slot_id)] += 1
        self._teacher_days[(a.teacher_id, a.day)] += 1

    def _pop(self) -> Assignment:
        a = self.assignments.pop()
        self._teacher_slots[(a.teacher_id, a.time_slot_id)] -= 1
        self._room_slots[(a.room_id, a.time_slot_id)] -= 1
        self._group_slots[(a.semester, a.section, a.time_slot_id)] -= 1
        self._teacher_days[(a.teacher_id, a.day)] -= 1
        return a

    def is_valid_assignment(self, candidate: Assignment) -> bool:
        """Restricciones duras activas contra las asignaciones ya aceptadas."""
        hard = self.constraints.hard
        if hard.no_teacher_conflict and self._teacher_slots[(candidate.teacher_id, candidate.time_slot_id)] > 0:
            return False
        if hard.no_room_conflict and self._room_slots[(candidate.room_id, candidate.time_slot_id)] > 0:
            return False
        if hard.no_student_conflict and self._group_slots[(candidate.semester, candidate.section, candidate.time_slot_id)] > 0:
            return False
        if hard.respect_session_room_type:
            room = self.rooms_by_id.get(candidate.room_id)
            if room is not None and not room.supports(candidate.session_type):
                return False
        if hard.max_teacher_hours_per_day > 0:
            if self._teacher_days[(candidate.teacher_id, candidate.day)] >= hard.max_teacher_hours_per_day:
                return False
        return True

    # --- Búsqueda ---

    def _candidates(self, inst: SessionInstance, slots: List[TimeSlot], rooms: List[Room]) -> Iterator[Assignment]:
        for slot in slots:
            for room in rooms:
                yield Assignment.build(inst.session, slot, room, inst.occurrence)

    def solve(self) -> Optional[List[Assignment]]:
        self._reset_state()
        self.iterations = 0
        self.backtracks = 0

        ordered = sort_by_constraint_complexity(expand_sessions(self.sessions))
        slots = valid_time_slots(self.time_slots, self.constraints)
        room_domains = [
            valid_rooms(inst.session, self.rooms, self.constraints.hard.respect_session_room_type)
            for inst in ordered
        ]
        deadline = time.monotonic() + self.time_limit_seconds if self.time_limit_seconds is not None else None

        logger.info("Scheduling %d session instances over %d slots and %d rooms", len(ordered), len(slots), len(self.rooms))

        n = len(ordered)
        if n == 0:
            return []

        # Un iterador de candidatos por nivel; frames[d] pertenece a ordered[d]
        frames = [self._candidates(ordered[0], slots, room_domains[0])]
        while frames:
            depth = len(self.assignments)
            if depth == n:
                logger.info("Solution found with %d assignments after %d iterations", n, self.iterations)
                return list(self.assignments)

            if self.iterations > self.max_iterations:
                logger.info("No solution within %d iterations", self.max_iterations)
                return None
            if deadline is not None and time.monotonic() >= deadline:
                logger.info("Constraint solver hit its time limit after %d iterations", self.iterations)
                return None

            accepted = False
            for cand in frames[-1]:
                if self.is_valid_assignment(cand):
                    self._push(cand)
                    self.iterations += 1
                    if depth + 1 < n:
                        frames.append(self._candidates(ordered[depth + 1], slots, room_domains[depth + 1]))
                    accepted = True
                    break

            if not accepted:
                frames.pop()
                if self.assignments:
                    self._pop()
                    self.backtracks += 1

        logger.info("Search space exhausted after %d iterations", self.iterations)
        return None

    # --- Calidad ---

    def calculate_fitness(self, assignments: Sequence[Assignment]) -> float:
        return soft_penalty(assignments, self.slots_by_id, self.constraints)

    def get_solution_stats(self, assignments: Sequence[Assignment]) -> SolutionStats:
        return solution_stats(assignments, self.slots_by_id, self.constraints)
