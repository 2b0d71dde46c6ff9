# timetable/domains.py
from collections import Counter
from dataclasses import dataclass
from typing import List, Optional, Sequence

from .config import Constraints
from .model import LAB, THEORY, TUTORIAL, CourseSession, Room, TimeSlot
from .timegrid import is_lunch_time

# Mayor número = más restringido
SESSION_PRIORITY = {LAB: 3, TUTORIAL: 2, THEORY: 1}


@dataclass(frozen=True)
class SessionInstance:
    session: CourseSession
    occurrence: int  # 1..sessions_per_week


def expand_sessions(sessions: Sequence[CourseSession]) -> List[SessionInstance]:
    """3 sesiones por semana -> 3 instancias independientes."""
    out: List[SessionInstance] = []
    for s in sessions:
        for k in range(s.sessions_per_week):
            out.append(SessionInstance(s, k + 1))
    return out


def sort_by_constraint_complexity(instances: Sequence[SessionInstance]) -> List[SessionInstance]:
    """Heurística MCV: lab > tutorial > teoría, luego más sesiones/semana, luego nombre."""
    return sorted(
        instances,
        key=lambda inst: (
            -SESSION_PRIORITY.get(inst.session.session_type, 0),
            -inst.session.sessions_per_week,
            inst.session.course_name,
        ),
    )


def valid_rooms(session: CourseSession, rooms: Sequence[Room], respect_room_type: bool = True) -> List[Room]:
    if not respect_room_type:
        return list(rooms)
    return [r for r in rooms if r.supports(session.session_type)]


def valid_time_slots(time_slots: Sequence[TimeSlot], constraints: Constraints) -> List[TimeSlot]:
    slots = list(time_slots)
    if constraints.soft.lunch_break_mandatory and constraints.lunch_break is not None:
        slots = [s for s in slots if not is_lunch_time(s.start_time, s.end_time, constraints.lunch_break)]
    return slots


def check_feasibility(
    time_slots: Sequence[TimeSlot],
    sessions: Sequence[CourseSession],
    rooms: Sequence[Room],
    constraints: Optional[Constraints] = None,
) -> List[str]:
    """
    Chequeo previo barato: detecta entradas que no pueden tener solución
    (sin aulas, sin slots, labs sin laboratorio, secciones con más
    sesiones que slots disponibles). Devuelve mensajes, no lanza.
    Si no se respeta el tipo de aula, los labs pueden ir a cualquier aula.
    """
    issues: List[str] = []
    if not sessions:
        return issues
    if not time_slots:
        issues.append("No time slots available")
    if not rooms:
        issues.append("No rooms available")
        return issues

    respect_room_type = constraints is None or constraints.hard.respect_session_room_type
    labs_need_room = respect_room_type and any(s.session_type == LAB for s in sessions)
    if labs_need_room and not any(r.supports(LAB) for r in rooms):
        labs = sorted({s.course_name for s in sessions if s.session_type == LAB})
        issues.append(f"No lab-capable room for lab sessions: {', '.join(labs)}")

    load = Counter()
    for s in sessions:
        load[(s.semester, s.section)] += s.sessions_per_week
    for (semester, section), needed in sorted(load.items(), key=lambda kv: (kv[0][0], str(kv[0][1]))):
        if needed > len(time_slots):
            issues.append(
                f"Semester {semester} Section {section} needs {needed} slots but only {len(time_slots)} are available"
            )
    return issues


@dataclass(frozen=True)
class ProblemDomain:
    """Todo lo que los operadores del AG necesitan por corrida (solo lectura)."""
    instances: List[SessionInstance]
    time_slots: List[TimeSlot]
    rooms: List[Room]
    room_domains: List[List[Room]]  # alineado con instances
    constraints: Constraints

    @property
    def size(self) -> int:
        return len(self.instances)


def build_problem_domain(
    time_slots: Sequence[TimeSlot],
    sessions: Sequence[CourseSession],
    rooms: Sequence[Room],
    constraints: Constraints,
) -> ProblemDomain:
    instances = expand_sessions(sessions)
    room_domains = [
        valid_rooms(inst.session, rooms, constraints.hard.respect_session_room_type) for inst in instances
    ]
    return ProblemDomain(
        instances=instances,
        time_slots=list(time_slots),
        rooms=list(rooms),
        room_domains=room_domains,
        constraints=constraints,
    )
