# timetable/evaluation.py
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, Hashable, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from .config import Constraints, HardConstraints
from .model import LAB, THEORY, Assignment, Chromosome, Room, TimeSlot
from .timegrid import is_lunch_time, time_to_minutes

AFTERNOON_START = 14 * 60

TEACHER = "teacher"
ROOM = "room"
STUDENT = "student"
ROOM_TYPE = "room_type"
TEACHER_DAY = "teacher_day"


@dataclass(frozen=True)
class Violation:
    kind: str
    positions: Tuple[int, ...]  # índices dentro de la lista de asignaciones


@dataclass
class SolutionStats:
    total_assignments: int
    fitness_score: float
    lunch_violations: int
    back_to_back_labs: int
    afternoon_theory: int
    workload_imbalance: float
    total_gaps: int
    teacher_utilization: Dict[int, int] = field(default_factory=dict)
    room_utilization: Dict[int, int] = field(default_factory=dict)


def index_slots(time_slots: Sequence[TimeSlot]) -> Dict[str, TimeSlot]:
    return {s.id: s for s in time_slots}


# --- Métricas blandas ---

def count_lunch_violations(assignments: Sequence[Assignment], constraints: Constraints) -> int:
    if constraints.lunch_break is None:
        return 0
    return sum(1 for a in assignments if is_lunch_time(a.start_time, a.end_time, constraints.lunch_break))


def count_back_to_back_labs(assignments: Sequence[Assignment], slots: Mapping[str, TimeSlot]) -> int:
    """Pares de labs del mismo docente, mismo día, en slots contiguos."""
    by_teacher_day: Dict[Tuple[int, str], List[int]] = defaultdict(list)
    for a in assignments:
        if a.session_type != LAB:
            continue
        slot = slots.get(a.time_slot_id)
        if slot is None:
            continue
        by_teacher_day[(a.teacher_id, slot.day)].append(slot.slot_index)

    count = 0
    for indices in by_teacher_day.values():
        for i in range(len(indices)):
            for j in range(i + 1, len(indices)):
                if abs(indices[i] - indices[j]) == 1:
                    count += 1
    return count


def count_afternoon_theory(assignments: Sequence[Assignment]) -> int:
    return sum(
        1 for a in assignments
        if a.session_type == THEORY and time_to_minutes(a.start_time) >= AFTERNOON_START
    )


def workload_counts(assignments: Sequence[Assignment]) -> Dict[int, int]:
    counts: Dict[int, int] = defaultdict(int)
    for a in assignments:
        counts[a.teacher_id] += 1
    return dict(counts)


def workload_imbalance(assignments: Sequence[Assignment]) -> float:
    """Desviación estándar poblacional de asignaciones por docente."""
    counts = list(workload_counts(assignments).values())
    if not counts:
        return 0.0
    return float(np.std(np.array(counts, dtype=float)))


def total_student_gaps(assignments: Sequence[Assignment], slots: Mapping[str, TimeSlot]) -> int:
    groups: Dict[Tuple[int, str, str], List[int]] = defaultdict(list)
    for a in assignments:
        slot = slots.get(a.time_slot_id)
        if slot is None:
            continue
        groups[(a.semester, a.section, slot.day)].append(slot.slot_index)

    total = 0
    for indices in groups.values():
        if len(indices) < 2:
            continue
        diffs = np.diff(np.sort(np.array(indices))) - 1
        total += int(np.clip(diffs, 0, None).sum())
    return total


def soft_penalty(
    assignments: Sequence[Assignment],
    slots: Mapping[str, TimeSlot],
    constraints: Constraints,
) -> float:
    """F = Σ(w_i × p_i) sobre las restricciones blandas activas. Menor es mejor."""
    soft, w = constraints.soft, constraints.weights
    penalty = 0.0
    if soft.lunch_break_mandatory:
        penalty += count_lunch_violations(assignments, constraints) * w.lunch_break
    if soft.avoid_back_to_back_labs:
        penalty += count_back_to_back_labs(assignments, slots) * w.back_to_back_labs
    if soft.morning_theory_preference:
        penalty += count_afternoon_theory(assignments) * w.morning_theory
    if soft.teacher_workload_balance:
        penalty += workload_imbalance(assignments) * w.workload_balance
    if soft.minimize_gaps:
        penalty += total_student_gaps(assignments, slots) * w.gaps
    return penalty


# --- Restricciones duras ---

def _group(assignments: Sequence[Assignment], key) -> Dict[Hashable, List[int]]:
    groups: Dict[Hashable, List[int]] = defaultdict(list)
    for pos, a in enumerate(assignments):
        groups[key(a)].append(pos)
    return groups


def find_violations(
    assignments: Sequence[Assignment],
    hard: Optional[HardConstraints] = None,
    rooms: Optional[Mapping[int, Room]] = None,
) -> List[Violation]:
    """
    Agrupa por claves compuestas (docente,slot), (aula,slot) y
    (semestre,sección,slot); cada grupo con más de un miembro es una violación.
    Con `rooms` también marca labs en aulas que no los admiten. Con tope
    diario, cada asignación de un docente por encima del tope en un día es
    una violación aparte.
    """
    hard = hard or HardConstraints()
    checks = []
    if hard.no_teacher_conflict:
        checks.append((TEACHER, lambda a: (a.teacher_id, a.time_slot_id)))
    if hard.no_room_conflict:
        checks.append((ROOM, lambda a: (a.room_id, a.time_slot_id)))
    if hard.no_student_conflict:
        checks.append((STUDENT, lambda a: (a.semester, a.section, a.time_slot_id)))

    violations: List[Violation] = []
    for kind, key in checks:
        for positions in _group(assignments, key).values():
            if len(positions) > 1:
                violations.append(Violation(kind, tuple(positions)))

    if rooms is not None and hard.respect_session_room_type:
        for pos, a in enumerate(assignments):
            room = rooms.get(a.room_id)
            if room is not None and not room.supports(a.session_type):
                violations.append(Violation(ROOM_TYPE, (pos,)))

    cap = hard.max_teacher_hours_per_day
    if cap > 0:
        for positions in _group(assignments, lambda a: (a.teacher_id, a.day)).values():
            for pos in positions[cap:]:
                violations.append(Violation(TEACHER_DAY, (pos,)))
    return violations


def count_hard_violations(violations: Sequence[Violation]) -> int:
    return sum(max(1, len(v.positions) - 1) for v in violations)


def evaluate_chromosome(
    ch: Chromosome,
    slots: Mapping[str, TimeSlot],
    constraints: Constraints,
    hard_weight: float,
    rooms: Optional[Mapping[int, Room]] = None,
) -> Chromosome:
    violations = find_violations(ch.assignments, constraints.hard, rooms)
    ch.is_valid = not violations
    ch.fitness = count_hard_violations(violations) * hard_weight + soft_penalty(ch.assignments, slots, constraints)
    return ch


def solution_stats(
    assignments: Sequence[Assignment],
    slots: Mapping[str, TimeSlot],
    constraints: Constraints,
) -> SolutionStats:
    room_use: Dict[int, int] = defaultdict(int)
    for a in assignments:
        room_use[a.room_id] += 1
    return SolutionStats(
        total_assignments=len(assignments),
        fitness_score=soft_penalty(assignments, slots, constraints),
        lunch_violations=count_lunch_violations(assignments, constraints),
        back_to_back_labs=count_back_to_back_labs(assignments, slots),
        afternoon_theory=count_afternoon_theory(assignments),
        workload_imbalance=workload_imbalance(assignments),
        total_gaps=total_student_gaps(assignments, slots),
        teacher_utilization=workload_counts(assignments),
        room_utilization=dict(room_use),
    )
