# timetable/initial_population.py
import logging
import random
from collections import Counter
from typing import Callable, List, Optional, Set, Tuple

from .domains import ProblemDomain
from .evaluation import find_violations
from .model import Assignment, Chromosome

logger = logging.getLogger(__name__)


def build_random_chromosome(dom: ProblemDomain, rng: random.Random) -> Optional[Chromosome]:
    """
    Asigna slot+aula al azar a cada instancia con chequeos locales laxos
    (docente, aula, sección y tope diario contra los genes ya puestos). Si no queda slot
    libre se usa cualquiera; el fitness se encarga. Devuelve None solo si
    alguna instancia no tiene aula compatible.
    """
    if not dom.time_slots:
        return None
    if any(not rooms for rooms in dom.room_domains):
        return None

    genes: List[Optional[Assignment]] = [None] * dom.size
    teacher_busy: Set[Tuple[int, str]] = set()
    room_busy: Set[Tuple[int, str]] = set()
    group_busy: Set[Tuple[int, str, str]] = set()
    teacher_days: Counter = Counter()
    cap = dom.constraints.hard.max_teacher_hours_per_day

    order = list(range(dom.size))
    rng.shuffle(order)
    for pos in order:
        inst = dom.instances[pos]
        s = inst.session
        room = rng.choice(dom.room_domains[pos])
        free = [
            slot for slot in dom.time_slots
            if (s.teacher_id, slot.id) not in teacher_busy
            and (room.id, slot.id) not in room_busy
            and (s.semester, s.section, slot.id) not in group_busy
            and (cap <= 0 or teacher_days[(s.teacher_id, slot.day)] < cap)
        ]
        slot = rng.choice(free) if free else rng.choice(dom.time_slots)
        genes[pos] = Assignment.build(s, slot, room, inst.occurrence)
        teacher_busy.add((s.teacher_id, slot.id))
        room_busy.add((room.id, slot.id))
        group_busy.add((s.semester, s.section, slot.id))
        teacher_days[(s.teacher_id, slot.day)] += 1

    ch = Chromosome(assignments=genes)
    ch.is_valid = not find_violations(ch.assignments, dom.constraints.hard)
    return ch


def build_initial_population(dom: ProblemDomain, pop_size: int, rng: random.Random) -> List[Chromosome]:
    population = []
    for _ in range(pop_size):
        ch = build_random_chromosome(dom, rng)
        if ch is not None:
            population.append(ch)
    return population


def build_repaired_population(
    dom: ProblemDomain,
    pop_size: int,
    rng: random.Random,
    repair: Callable[[Chromosome], Chromosome],
    attempts: int = 5,
) -> List[Chromosome]:
    """Hasta `attempts` intentos crear+reparar por individuo; el último se acepta igual."""
    population: List[Chromosome] = []
    for _ in range(pop_size):
        ch: Optional[Chromosome] = None
        for _attempt in range(max(1, attempts)):
            ch = build_random_chromosome(dom, rng)
            if ch is None:
                break
            if ch.is_valid:
                break
            ch = repair(ch)
            if ch.is_valid:
                break
        if ch is not None:
            population.append(ch)

    valid = sum(1 for c in population if c.is_valid)
    logger.debug("Seeded population: %d/%d valid", valid, len(population))
    return population
