# timetable/model.py
from dataclasses import dataclass, field, replace
from typing import List, Optional

SlotId = str

THEORY = "theory"
LAB = "lab"
TUTORIAL = "tutorial"
BOTH = "both"

SESSION_TYPES = (THEORY, LAB, TUTORIAL)
ROOM_TYPES = (THEORY, LAB, BOTH)


@dataclass(frozen=True)
class TimeSlot:
    id: SlotId          # ej. "MON_08:00"
    day: str
    start_time: str     # "HH:MM"
    end_time: str
    slot_index: int     # posición dentro del día


@dataclass(frozen=True)
class CourseSession:
    # Una necesidad semanal recurrente, no una reunión concreta
    course_id: int
    course_name: str
    course_code: str
    teacher_id: int
    teacher_name: str
    session_type: str       # theory / lab / tutorial
    sessions_per_week: int
    duration: int           # minutos
    semester: int
    section: str
    room_preference: Optional[str] = None


@dataclass(frozen=True)
class Room:
    id: int
    name: str
    capacity: int
    room_type: str          # theory / lab / both

    def supports(self, session_type: str) -> bool:
        if session_type == LAB:
            return self.room_type in (LAB, BOTH)
        return True


@dataclass(frozen=True)
class Assignment:
    course_id: int
    course_name: str
    course_code: str
    teacher_id: int
    teacher_name: str
    room_id: int
    room_name: str
    time_slot_id: SlotId
    day: str
    start_time: str
    end_time: str
    session_type: str
    semester: int
    section: str
    occurrence: int = 1

    @classmethod
    def build(cls, session: CourseSession, slot: TimeSlot, room: Room, occurrence: int = 1) -> "Assignment":
        return cls(
            course_id=session.course_id,
            course_name=session.course_name,
            course_code=session.course_code,
            teacher_id=session.teacher_id,
            teacher_name=session.teacher_name,
            room_id=room.id,
            room_name=room.name,
            time_slot_id=slot.id,
            day=slot.day,
            start_time=slot.start_time,
            end_time=slot.end_time,
            session_type=session.session_type,
            semester=session.semester,
            section=session.section,
            occurrence=occurrence,
        )

    def moved_to(self, slot: TimeSlot) -> "Assignment":
        return replace(
            self,
            time_slot_id=slot.id,
            day=slot.day,
            start_time=slot.start_time,
            end_time=slot.end_time,
        )

    def with_room(self, room: Room) -> "Assignment":
        return replace(self, room_id=room.id, room_name=room.name)


@dataclass
class Chromosome:
    # La posición i siempre corresponde a la instancia expandida i
    assignments: List[Assignment] = field(default_factory=list)
    fitness: float = 0.0
    is_valid: bool = False

    def copy(self) -> "Chromosome":
        return Chromosome(list(self.assignments), self.fitness, self.is_valid)
