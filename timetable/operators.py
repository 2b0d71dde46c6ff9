# timetable/operators.py
import math
import random
from typing import Callable, List, Optional, Sequence

from .config import HardConstraints
from .domains import ProblemDomain
from .evaluation import ROOM, ROOM_TYPE, TEACHER_DAY, find_violations
from .model import Assignment, Chromosome, Room, TimeSlot

RankKey = Callable[[Chromosome], object]


def fitness_key(ch: Chromosome) -> float:
    return ch.fitness


def validity_first_key(ch: Chromosome):
    """Válidos antes que inválidos, después por fitness."""
    return (not ch.is_valid, ch.fitness)


def tournament_selection(
    population: Sequence[Chromosome],
    rng: random.Random,
    k: int = 3,
    key: RankKey = fitness_key,
) -> Chromosome:
    contenders = [population[rng.randrange(len(population))] for _ in range(k)]
    return min(contenders, key=key)


def single_point_crossover(p1: Chromosome, p2: Chromosome, rng: random.Random) -> Chromosome:
    """Empalma las listas en un punto; las posiciones siguen alineadas con las instancias."""
    n = len(p1.assignments)
    if n == 0:
        return Chromosome()
    point = rng.randrange(n)
    return Chromosome(assignments=p1.assignments[:point] + p2.assignments[point:])


def mutate(ch: Chromosome, dom: ProblemDomain, rng: random.Random, fraction: float = 0.1) -> Chromosome:
    """Cambia slot o aula de ~`fraction` de los genes."""
    genes = list(ch.assignments)
    if not genes or not dom.time_slots:
        return Chromosome(assignments=genes)
    for _ in range(math.ceil(len(genes) * fraction)):
        pos = rng.randrange(len(genes))
        if rng.random() < 0.5:
            genes[pos] = genes[pos].moved_to(rng.choice(dom.time_slots))
        else:
            rooms = dom.room_domains[pos]
            if rooms:
                genes[pos] = genes[pos].with_room(rng.choice(rooms))
    return Chromosome(assignments=genes)


# --- Reparación ---

def _clashes(a: Assignment, b: Assignment, hard: HardConstraints) -> bool:
    if a.time_slot_id != b.time_slot_id:
        return False
    if hard.no_teacher_conflict and a.teacher_id == b.teacher_id:
        return True
    if hard.no_room_conflict and a.room_id == b.room_id:
        return True
    if hard.no_student_conflict and a.semester == b.semester and a.section == b.section:
        return True
    return False


def _others(genes: Sequence[Assignment], pos: int) -> List[Assignment]:
    return [g for i, g in enumerate(genes) if i != pos]


def _over_day_cap(assignment: Assignment, others: Sequence[Assignment], cap: int) -> bool:
    if cap <= 0:
        return False
    load = sum(1 for o in others if o.teacher_id == assignment.teacher_id and o.day == assignment.day)
    return load >= cap


def find_available_slot(
    assignment: Assignment,
    others: Sequence[Assignment],
    time_slots: Sequence[TimeSlot],
    hard: HardConstraints,
) -> Optional[TimeSlot]:
    """Primer slot sin choque de docente, aula o sección contra el resto y dentro del tope diario."""
    for slot in time_slots:
        moved = assignment.moved_to(slot)
        if any(_clashes(moved, o, hard) for o in others):
            continue
        if _over_day_cap(moved, others, hard.max_teacher_hours_per_day):
            continue
        return slot
    return None


def find_available_room(
    assignment: Assignment,
    others: Sequence[Assignment],
    rooms: Sequence[Room],
) -> Optional[Room]:
    """Primera aula compatible libre en el slot actual."""
    taken = {o.room_id for o in others if o.time_slot_id == assignment.time_slot_id}
    for room in rooms:
        if room.supports(assignment.session_type) and room.id not in taken:
            return room
    return None


def repair_chromosome(ch: Chromosome, dom: ProblemDomain) -> Chromosome:
    """
    Por cada grupo en conflicto se queda el primero y se intenta reubicar
    al resto (first-fit, sin backtracking). Las asignaciones sobre el tope
    diario del docente se llevan a otro día. Lo que no se pueda mover queda
    donde estaba y el cromosoma sigue inválido.
    """
    hard = dom.constraints.hard
    cap = hard.max_teacher_hours_per_day
    genes = list(ch.assignments)
    rooms_by_id = {r.id: r for r in dom.rooms}
    violations = find_violations(genes, hard, rooms_by_id)
    if not violations:
        return Chromosome(assignments=genes, is_valid=True)

    for v in violations:
        movable = v.positions if v.kind in (ROOM_TYPE, TEACHER_DAY) else v.positions[1:]
        for pos in movable:
            current = genes[pos]
            others = _others(genes, pos)
            room_ok = rooms_by_id.get(current.room_id) is None or rooms_by_id[current.room_id].supports(current.session_type)
            if (
                room_ok
                and not any(_clashes(current, o, hard) for o in others)
                and not _over_day_cap(current, others, cap)
            ):
                continue  # ya resuelto por un movimiento anterior

            if v.kind in (ROOM, ROOM_TYPE):
                room = find_available_room(current, others, dom.room_domains[pos])
                if room is not None:
                    candidate = current.with_room(room)
                    if not any(_clashes(candidate, o, hard) for o in others):
                        genes[pos] = candidate
                        continue
                if v.kind == ROOM_TYPE:
                    continue

            slot = find_available_slot(current, others, dom.time_slots, hard)
            if slot is not None:
                genes[pos] = current.moved_to(slot)

    return Chromosome(assignments=genes, is_valid=not find_violations(genes, hard, rooms_by_id))
