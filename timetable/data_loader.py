# timetable/data_loader.py
from typing import Dict, List, Sequence

import pandas as pd

from .model import Assignment, CourseSession, Room, TimeSlot

DAY_ORDER = {d: i for i, d in enumerate(
    ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]
)}

_SLOT_COLS = ["id", "day", "start_time", "end_time", "slot_index"]
_ROOM_COLS = ["id", "name", "room_type"]
_SESSION_COLS = ["course_id", "course_name", "teacher_id", "session_type", "semester", "section"]


def _require(df: pd.DataFrame, cols: Sequence[str], what: str) -> None:
    missing = [c for c in cols if c not in df.columns]
    if missing:
        raise ValueError(f"{what} table is missing columns: {', '.join(missing)}")


def time_slots_from_frame(df: pd.DataFrame) -> List[TimeSlot]:
    _require(df, _SLOT_COLS, "time slot")
    return [
        TimeSlot(
            id=str(r.id),
            day=str(r.day),
            start_time=str(r.start_time),
            end_time=str(r.end_time),
            slot_index=int(r.slot_index),
        )
        for r in df.itertuples(index=False)
    ]


def rooms_from_frame(df: pd.DataFrame) -> List[Room]:
    _require(df, _ROOM_COLS, "room")
    df = df.copy()
    if "capacity" not in df.columns:
        df["capacity"] = 0
    return [
        Room(
            id=int(r.id),
            name=str(r.name),
            capacity=int(r.capacity) if pd.notna(r.capacity) else 0,
            room_type=str(r.room_type).strip().lower(),
        )
        for r in df.itertuples(index=False)
    ]


def sessions_from_frame(df: pd.DataFrame) -> List[CourseSession]:
    _require(df, _SESSION_COLS, "course session")
    df = df.copy()
    defaults = {
        "course_code": "",
        "teacher_name": "",
        "sessions_per_week": 1,
        "duration": 60,
        "room_preference": None,
    }
    for col, val in defaults.items():
        if col not in df.columns:
            df[col] = val
    df["teacher_name"] = df["teacher_name"].fillna("")
    blank = df["teacher_name"].astype(str).str.strip() == ""
    df.loc[blank, "teacher_name"] = "Teacher " + df.loc[blank, "teacher_id"].astype(str)

    out: List[CourseSession] = []
    for r in df.itertuples(index=False):
        pref = r.room_preference if pd.notna(r.room_preference) else None
        out.append(
            CourseSession(
                course_id=int(r.course_id),
                course_name=str(r.course_name),
                course_code=str(r.course_code),
                teacher_id=int(r.teacher_id),
                teacher_name=str(r.teacher_name),
                session_type=str(r.session_type).strip().lower(),
                sessions_per_week=int(r.sessions_per_week),
                duration=int(r.duration),
                semester=int(r.semester),
                section=str(r.section),
                room_preference=str(pref) if pref is not None else None,
            )
        )
    return out


def assignments_to_frame(assignments: Sequence[Assignment]) -> pd.DataFrame:
    """Una fila por asignación, ordenada por día, hora y sección."""
    rows: List[Dict] = [
        {
            "Day": a.day,
            "Start": a.start_time,
            "End": a.end_time,
            "Course": a.course_code or a.course_name,
            "CourseName": a.course_name,
            "Type": a.session_type,
            "Semester": a.semester,
            "Section": a.section,
            "Teacher": a.teacher_name,
            "Room": a.room_name,
            "Occurrence": a.occurrence,
        }
        for a in assignments
    ]
    df = pd.DataFrame(rows, columns=[
        "Day", "Start", "End", "Course", "CourseName", "Type",
        "Semester", "Section", "Teacher", "Room", "Occurrence",
    ])
    if df.empty:
        return df
    df["_day"] = df["Day"].str.lower().map(DAY_ORDER).fillna(len(DAY_ORDER))
    df = df.sort_values(["_day", "Start", "Semester", "Section"], kind="stable").drop(columns="_day")
    return df.reset_index(drop=True)
