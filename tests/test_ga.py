import random
import unittest
from collections import Counter

from timetable.config import Constraints, GenerationConfig, HardConstraints
from timetable.domains import build_problem_domain
from timetable.evaluation import find_violations
from timetable.ga import GeneticOptimizer, RepairingGeneticOptimizer
from timetable.initial_population import build_random_chromosome
from timetable.model import Assignment, Chromosome, CourseSession, Room, TimeSlot
from timetable.operators import (
    mutate,
    repair_chromosome,
    single_point_crossover,
    tournament_selection,
    validity_first_key,
)
from timetable.timegrid import build_time_slots


def make_session(course_id, name, teacher_id, session_type="theory", per_week=1, semester=1, section="A"):
    return CourseSession(
        course_id=course_id,
        course_name=name,
        course_code=f"C{course_id:03d}",
        teacher_id=teacher_id,
        teacher_name=f"T{teacher_id}",
        session_type=session_type,
        sessions_per_week=per_week,
        duration=60,
        semester=semester,
        section=section,
    )


SLOTS = [
    TimeSlot("MON_08:00", "Monday", "08:00", "09:00", 0),
    TimeSlot("MON_09:00", "Monday", "09:00", "10:00", 1),
]
R1 = Room(1, "R101", 40, "theory")
R2 = Room(2, "R102", 40, "theory")
LAB = Room(3, "LAB1", 30, "lab")


class FixedRandom:
    """randrange devuelve una secuencia fija."""

    def __init__(self, picks):
        self.picks = list(picks)

    def randrange(self, n):
        return self.picks.pop(0) % n


def small_problem():
    slots = build_time_slots(["Monday", "Tuesday", "Wednesday"], "08:00", "12:00", 60)
    sessions = [
        make_session(1, "Algebra", 1, per_week=2, section="A"),
        make_session(2, "Algebra", 1, per_week=2, section="B"),
        make_session(3, "Chem Lab", 2, "lab", per_week=1, section="A"),
        make_session(4, "Chem Lab", 2, "lab", per_week=1, section="B"),
        make_session(5, "History", 3, per_week=2, section="A"),
    ]
    return slots, sessions, [R1, R2, LAB]


def small_config(**overrides):
    values = dict(population_size=12, generations=20, max_stagnation=8, seed=11)
    values.update(overrides)
    return GenerationConfig(**values)


class OperatorTests(unittest.TestCase):
    def test_validity_first_ranking(self):
        invalid = Chromosome(fitness=1.0, is_valid=False)
        valid = Chromosome(fitness=50.0, is_valid=True)
        self.assertIs(min([invalid, valid], key=validity_first_key), valid)

    def test_tournament_prefers_valid(self):
        invalid = Chromosome(fitness=1.0, is_valid=False)
        valid = Chromosome(fitness=50.0, is_valid=True)
        picked = tournament_selection([invalid, valid], FixedRandom([0, 1, 0]), k=3, key=validity_first_key)
        self.assertIs(picked, valid)

    def test_crossover_keeps_positions(self):
        s = [make_session(i, f"C{i}", i) for i in range(1, 6)]
        p1 = Chromosome([Assignment.build(x, SLOTS[0], R1) for x in s])
        p2 = Chromosome([Assignment.build(x, SLOTS[1], R2) for x in s])
        child = single_point_crossover(p1, p2, random.Random(4))
        self.assertEqual(len(child.assignments), 5)
        for i, gene in enumerate(child.assignments):
            self.assertIn(gene, (p1.assignments[i], p2.assignments[i]))
            self.assertEqual(gene.course_id, s[i].course_id)

    def test_mutation_respects_room_domain(self):
        sessions = [make_session(1, "Chem Lab", 1, "lab"), make_session(2, "Math", 2)]
        dom = build_problem_domain(SLOTS, sessions, [R1, LAB], Constraints())
        rng = random.Random(2)
        ch = build_random_chromosome(dom, rng)
        for _ in range(50):
            ch = mutate(ch, dom, rng, fraction=1.0)
            self.assertEqual(ch.assignments[0].room_id, LAB.id)
            self.assertEqual([a.course_id for a in ch.assignments], [1, 2])

    def test_random_chromosome_needs_compatible_room(self):
        dom = build_problem_domain(SLOTS, [make_session(1, "Chem Lab", 1, "lab")], [R1], Constraints())
        self.assertIsNone(build_random_chromosome(dom, random.Random(0)))


class RepairTests(unittest.TestCase):
    def test_teacher_clash_is_moved(self):
        sessions = [make_session(1, "Math", 1, section="A"), make_session(2, "Physics", 1, section="B")]
        dom = build_problem_domain(SLOTS, sessions, [R1, R2], Constraints())
        ch = Chromosome([
            Assignment.build(sessions[0], SLOTS[0], R1),
            Assignment.build(sessions[1], SLOTS[0], R2),
        ])
        fixed = repair_chromosome(ch, dom)
        self.assertTrue(fixed.is_valid)
        self.assertEqual(fixed.assignments[0], ch.assignments[0])
        self.assertEqual(fixed.assignments[1].time_slot_id, "MON_09:00")
        self.assertEqual(find_violations(fixed.assignments), [])

    def test_room_clash_prefers_room_change(self):
        sessions = [make_session(1, "Math", 1, section="A"), make_session(2, "Physics", 2, section="B")]
        dom = build_problem_domain(SLOTS, sessions, [R1, R2], Constraints())
        ch = Chromosome([
            Assignment.build(sessions[0], SLOTS[0], R1),
            Assignment.build(sessions[1], SLOTS[0], R1),
        ])
        fixed = repair_chromosome(ch, dom)
        self.assertTrue(fixed.is_valid)
        self.assertEqual(fixed.assignments[1].time_slot_id, "MON_08:00")
        self.assertEqual(fixed.assignments[1].room_id, R2.id)

    def test_lab_in_classroom_is_relocated(self):
        lab = make_session(1, "Chem Lab", 1, "lab")
        dom = build_problem_domain(SLOTS, [lab], [R1, LAB], Constraints())
        fixed = repair_chromosome(Chromosome([Assignment.build(lab, SLOTS[0], R1)]), dom)
        self.assertTrue(fixed.is_valid)
        self.assertEqual(fixed.assignments[0].room_id, LAB.id)

    def test_daily_cap_moves_excess_to_another_day(self):
        slots = SLOTS + [TimeSlot("TUE_08:00", "Tuesday", "08:00", "09:00", 0)]
        sessions = [make_session(1, "Math", 1, section="A"), make_session(2, "Physics", 1, section="B")]
        constraints = Constraints(hard=HardConstraints(max_teacher_hours_per_day=1))
        dom = build_problem_domain(slots, sessions, [R1], constraints)
        ch = Chromosome([
            Assignment.build(sessions[0], slots[0], R1),
            Assignment.build(sessions[1], slots[1], R1),
        ])
        fixed = repair_chromosome(ch, dom)
        self.assertTrue(fixed.is_valid)
        self.assertEqual(fixed.assignments[0], ch.assignments[0])
        self.assertEqual(fixed.assignments[1].day, "Tuesday")

    def test_unrepairable_stays_invalid(self):
        sessions = [make_session(i, f"C{i}", 1, section=s) for i, s in ((1, "A"), (2, "B"), (3, "C"))]
        dom = build_problem_domain(SLOTS, sessions, [R1, R2, LAB], Constraints())
        ch = Chromosome([
            Assignment.build(sessions[0], SLOTS[0], R1),
            Assignment.build(sessions[1], SLOTS[0], R2),
            Assignment.build(sessions[2], SLOTS[0], LAB),
        ])
        fixed = repair_chromosome(ch, dom)
        self.assertFalse(fixed.is_valid)
        self.assertEqual(len(fixed.assignments), 3)


class OptimizerTests(unittest.TestCase):
    def test_repairing_optimizer_returns_valid_timetable(self):
        slots, sessions, rooms = small_problem()
        best = RepairingGeneticOptimizer(slots, sessions, rooms, Constraints(), small_config()).optimize()
        self.assertIsNotNone(best)
        self.assertTrue(best.is_valid)
        self.assertEqual(find_violations(best.assignments), [])
        self.assertEqual(len(best.assignments), 8)
        per_course = Counter(a.course_id for a in best.assignments)
        self.assertEqual(per_course[1], 2)
        self.assertEqual(per_course[3], 1)
        self.assertTrue(all(a.room_id == LAB.id for a in best.assignments if a.session_type == "lab"))

    def test_repairing_optimizer_gives_up_on_impossible_input(self):
        sessions = [make_session(i, f"C{i}", 1, section=s) for i, s in ((1, "A"), (2, "B"), (3, "C"))]
        opt = RepairingGeneticOptimizer(SLOTS, sessions, [R1, R2], Constraints(), small_config(generations=5, population_size=4))
        self.assertIsNone(opt.optimize())
        self.assertEqual(len(opt.history), 5)
        self.assertTrue(all(h["best_fitness"] is None for h in opt.history))

    def test_baseline_records_history(self):
        slots, sessions, rooms = small_problem()
        seen = []
        opt = GeneticOptimizer(slots, sessions, rooms, Constraints(), small_config(), progress_callback=seen.append)
        best = opt.optimize()
        self.assertIsNotNone(best)
        self.assertEqual(seen, opt.history)
        self.assertEqual(opt.history[0]["gen"], 0)
        fitness = [h["best_fitness"] for h in opt.history]
        self.assertEqual(fitness, sorted(fitness, reverse=True))

    def test_same_seed_same_result(self):
        slots, sessions, rooms = small_problem()
        a = RepairingGeneticOptimizer(slots, sessions, rooms, Constraints(), small_config()).optimize()
        b = RepairingGeneticOptimizer(slots, sessions, rooms, Constraints(), small_config()).optimize()
        self.assertEqual(a.assignments, b.assignments)

    def test_last_generation_breeds_no_children(self):
        class Counting(GeneticOptimizer):
            children = 0

            def _after_offspring(self, child):
                Counting.children += 1
                return child

        slots, sessions, rooms = small_problem()
        opt = Counting(slots, sessions, rooms, Constraints(), small_config(generations=1))
        self.assertIsNotNone(opt.optimize())
        self.assertEqual(Counting.children, 0)
        self.assertEqual(len(opt.history), 1)

    def test_zero_time_limit_discards_run(self):
        slots, sessions, rooms = small_problem()
        opt = RepairingGeneticOptimizer(slots, sessions, rooms, Constraints(), small_config(time_limit_seconds=0))
        self.assertIsNone(opt.optimize())
        self.assertEqual(opt.history, [])

    def test_no_rooms_means_no_population(self):
        opt = GeneticOptimizer(SLOTS, [make_session(1, "Math", 1)], [], Constraints(), small_config())
        self.assertIsNone(opt.optimize())


if __name__ == "__main__":
    unittest.main()
