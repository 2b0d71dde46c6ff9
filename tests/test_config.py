import os
import tempfile
import unittest

import pandas as pd

from timetable.config import GenerationConfig, LunchBreak, load_config, load_constraints
from timetable.data_loader import assignments_to_frame, rooms_from_frame, sessions_from_frame, time_slots_from_frame
from timetable.model import Assignment, CourseSession, Room, TimeSlot


class ConfigTests(unittest.TestCase):
    def write_yaml(self, text):
        fd, path = tempfile.mkstemp(suffix=".yaml")
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(text)
        self.addCleanup(os.remove, path)
        return path

    def test_from_dict_ignores_unknown_keys(self):
        cfg = GenerationConfig.from_dict({"population_size": 20, "colour": "blue"})
        self.assertEqual(cfg.population_size, 20)
        self.assertEqual(cfg.generations, 500)

    def test_missing_file_gives_defaults(self):
        cfg = load_config("/nonexistent/timetable.yaml")
        self.assertEqual(cfg.approach, "hybrid")
        self.assertEqual(cfg.max_iterations, 10000)

    def test_generation_section(self):
        path = self.write_yaml("generation:\n  approach: genetic\n  population_size: 30\n  seed: 9\n")
        cfg = load_config(path)
        self.assertEqual((cfg.approach, cfg.population_size, cfg.seed), ("genetic", 30, 9))

    def test_unknown_approach_rejected(self):
        path = self.write_yaml("approach: tabu\n")
        with self.assertRaises(ValueError):
            load_config(path)

    def test_non_mapping_rejected(self):
        path = self.write_yaml("- 1\n- 2\n")
        with self.assertRaises(ValueError):
            load_config(path)

    def test_constraints_section(self):
        path = self.write_yaml(
            "constraints:\n"
            "  hard:\n    max_teacher_hours_per_day: 4\n"
            "  soft:\n    minimize_gaps: false\n"
            "  weights:\n    gaps: 2.5\n"
            "  lunch_break:\n    start_time: '12:30'\n    end_time: '13:30'\n"
        )
        c = load_constraints(path)
        self.assertEqual(c.hard.max_teacher_hours_per_day, 4)
        self.assertTrue(c.hard.no_teacher_conflict)
        self.assertFalse(c.soft.minimize_gaps)
        self.assertEqual(c.weights.gaps, 2.5)
        self.assertEqual(c.weights.lunch_break, 10.0)
        self.assertEqual(c.lunch_break, LunchBreak("12:30", "13:30"))

    def test_constraints_without_lunch(self):
        path = self.write_yaml("generation:\n  seed: 1\n")
        self.assertIsNone(load_constraints(path).lunch_break)


class DataLoaderTests(unittest.TestCase):
    def test_slots_and_rooms(self):
        slots = time_slots_from_frame(pd.DataFrame([
            {"id": "MON_08:00", "day": "Monday", "start_time": "08:00", "end_time": "09:00", "slot_index": 0},
        ]))
        self.assertEqual(slots, [TimeSlot("MON_08:00", "Monday", "08:00", "09:00", 0)])

        rooms = rooms_from_frame(pd.DataFrame([{"id": 1, "name": "LAB1", "room_type": " Lab "}]))
        self.assertEqual(rooms, [Room(1, "LAB1", 0, "lab")])

    def test_session_defaults(self):
        sessions = sessions_from_frame(pd.DataFrame([
            {"course_id": 1, "course_name": "Math", "teacher_id": 4, "session_type": "Theory", "semester": 2, "section": "B"},
        ]))
        s = sessions[0]
        self.assertEqual(s.teacher_name, "Teacher 4")
        self.assertEqual(s.session_type, "theory")
        self.assertEqual((s.sessions_per_week, s.duration), (1, 60))
        self.assertIsNone(s.room_preference)

    def test_missing_columns(self):
        with self.assertRaises(ValueError):
            sessions_from_frame(pd.DataFrame([{"course_id": 1}]))

    def test_assignments_sorted_by_day_and_time(self):
        s = CourseSession(1, "Math", "M1", 1, "Ana", "theory", 2, 60, 1, "A")
        room = Room(1, "R101", 40, "theory")
        a = [
            Assignment.build(s, TimeSlot("TUE_08:00", "Tuesday", "08:00", "09:00", 0), room, 2),
            Assignment.build(s, TimeSlot("MON_10:00", "Monday", "10:00", "11:00", 2), room, 1),
        ]
        df = assignments_to_frame(a)
        self.assertEqual(list(df["Day"]), ["Monday", "Tuesday"])
        self.assertEqual(list(df["Occurrence"]), [1, 2])
        self.assertEqual(df.loc[0, "Course"], "M1")

    def test_empty_assignments(self):
        df = assignments_to_frame([])
        self.assertTrue(df.empty)
        self.assertIn("Room", df.columns)


if __name__ == "__main__":
    unittest.main()
