# timetable/timegrid.py
from typing import List, Optional, Sequence

from .config import LunchBreak
from .model import TimeSlot


def time_to_minutes(value: str) -> int:
    hours, minutes = value.strip().split(":")[:2]
    return int(hours) * 60 + int(minutes)


def minutes_to_time(total: int) -> str:
    return f"{total // 60:02d}:{total % 60:02d}"


def overlaps(start: str, end: str, window_start: str, window_end: str) -> bool:
    return time_to_minutes(start) < time_to_minutes(window_end) and time_to_minutes(end) > time_to_minutes(window_start)


def is_lunch_time(start: str, end: str, lunch_break: Optional[LunchBreak]) -> bool:
    if lunch_break is None:
        return False
    return overlaps(start, end, lunch_break.start_time, lunch_break.end_time)


def build_time_slots(
    working_days: Sequence[str],
    start_time: str,
    end_time: str,
    class_duration: int,
    lunch_break: Optional[LunchBreak] = None,
) -> List[TimeSlot]:
    """
    Construye la grilla semanal fija a partir de la configuración horaria.

    Los bloques que cruzan el almuerzo no se generan; el índice sigue
    contando para que los huecos reflejen la pausa.
    """
    if class_duration <= 0:
        raise ValueError("class_duration must be positive")
    day_start = time_to_minutes(start_time)
    day_end = time_to_minutes(end_time)

    slots: List[TimeSlot] = []
    for day in working_days:
        prefix = day[:3].upper()
        current = day_start
        idx = 0
        while current + class_duration <= day_end:
            start = minutes_to_time(current)
            end = minutes_to_time(current + class_duration)
            if not is_lunch_time(start, end, lunch_break):
                slots.append(TimeSlot(f"{prefix}_{start}", day, start, end, idx))
            current += class_duration
            idx += 1
    return slots
