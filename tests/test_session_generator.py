import math
import unittest
from datetime import date
from types import SimpleNamespace

from carnet.sessions import (
    IncompleteExceptionError,
    IncompleteTemplateError,
    SessionExceptionUtils,
    WeekSessionGenerator,
    is_dynamic_session_id,
    parse_dynamic_session_id,
)


WEEK_START = date(2024, 9, 2)


def make_template(template_id: int = 1, day_of_week: int = 1, **overrides) -> SimpleNamespace:
    values = {
        "id": template_id,
        "teacher_id": "teacher-1",
        "class_id": "class-5a",
        "subject_id": "subject-maths",
        "time_slot_id": 10,
        "day_of_week": day_of_week,
        "room": "B12",
    }
    values.update(overrides)
    return SimpleNamespace(**values)


class WeekGenerationTestCase(unittest.TestCase):
    def test_template_without_exception_gives_planned_session(self) -> None:
        sessions = WeekSessionGenerator.generate_week_sessions(WEEK_START, [make_template()], [])

        self.assertEqual(len(sessions), 1)
        session = sessions[0]
        self.assertEqual(session.id, "session-1-2024-09-02")
        self.assertEqual(session.session_date, WEEK_START)
        self.assertEqual(session.status, "planned")
        self.assertFalse(session.is_makeup)
        self.assertFalse(session.is_moved)
        self.assertEqual(session.room, "B12")
        self.assertEqual(session.created_by, "teacher-1")

    def test_day_of_week_offsets_the_date(self) -> None:
        sessions = WeekSessionGenerator.generate_week_sessions(
            WEEK_START, [make_template(day_of_week=3), make_template(2, day_of_week=7)]
        )

        self.assertEqual(
            [session.session_date for session in sessions],
            [date(2024, 9, 4), date(2024, 9, 8)],
        )

    def test_cancelled_occurrence_is_dropped(self) -> None:
        cancellation = SessionExceptionUtils.create_cancellation(1, WEEK_START, "Grève")

        sessions = WeekSessionGenerator.generate_week_sessions(
            WEEK_START, [make_template()], [cancellation]
        )

        self.assertEqual(sessions, [])

    def test_exception_on_another_date_is_ignored(self) -> None:
        cancellation = SessionExceptionUtils.create_cancellation(1, date(2024, 9, 9), "Grève")

        sessions = WeekSessionGenerator.generate_week_sessions(
            WEEK_START, [make_template()], [cancellation]
        )

        self.assertEqual(len(sessions), 1)

    def test_moved_occurrence_is_annotated_in_place(self) -> None:
        move = SessionExceptionUtils.create_move(1, WEEK_START, 11, reason="Sortie scolaire")

        sessions = WeekSessionGenerator.generate_week_sessions(
            WEEK_START, [make_template()], [move]
        )

        self.assertEqual(len(sessions), 1)
        session = sessions[0]
        self.assertEqual(session.session_date, WEEK_START)
        self.assertTrue(session.is_moved)
        self.assertEqual(session.time_slot_id, 11)
        self.assertIsNone(session.room)
        self.assertEqual(session.notes, "Sortie scolaire")
        self.assertEqual(session.id, f"session-1-2024-09-02-11-{move.id}")

    def test_added_exception_is_materialised_without_template(self) -> None:
        addition = SessionExceptionUtils.create_addition(
            date(2024, 9, 5),
            12,
            "C3",
            "Rattrapage",
            session_data={"class_id": "class-4b", "subject_id": "subject-maths"},
        )

        sessions = WeekSessionGenerator.generate_week_sessions(WEEK_START, [], [addition])

        self.assertEqual(len(sessions), 1)
        session = sessions[0]
        self.assertEqual(session.id, f"session-added-{addition.id}")
        self.assertEqual(session.session_date, date(2024, 9, 5))
        self.assertEqual(session.time_slot_id, 12)
        self.assertEqual(session.room, "C3")
        self.assertEqual(session.class_id, "class-4b")
        self.assertTrue(session.is_moved)
        self.assertEqual(session.notes, "Session ajoutée : Rattrapage")

    def test_added_exception_falls_back_on_its_template(self) -> None:
        addition = SessionExceptionUtils.create_addition(
            date(2024, 9, 6), 12, None, "Report", template_id=1
        )

        sessions = WeekSessionGenerator.generate_week_sessions(
            WEEK_START, [make_template()], [addition]
        )

        self.assertEqual(len(sessions), 2)
        added = sessions[1]
        self.assertEqual(added.class_id, "class-5a")
        self.assertEqual(added.created_by, "teacher-1")
        self.assertIsNone(added.room)

    def test_added_exception_needs_a_time_slot(self) -> None:
        addition = SessionExceptionUtils.create_addition(date(2024, 9, 5), None, "C3", "Ajout")

        with self.assertRaises(IncompleteExceptionError):
            WeekSessionGenerator.generate_week_sessions(WEEK_START, [], [addition])

    def test_incomplete_templates_are_rejected(self) -> None:
        with self.assertRaises(IncompleteTemplateError):
            WeekSessionGenerator.generate_week_sessions(
                WEEK_START, [make_template(class_id=None)]
            )
        with self.assertRaises(IncompleteTemplateError):
            WeekSessionGenerator.generate_week_sessions(WEEK_START, [make_template(day_of_week=8)])

    def test_identifiers_are_stable_between_calls(self) -> None:
        templates = [make_template(), make_template(2, day_of_week=2)]

        first = WeekSessionGenerator.generate_week_sessions(WEEK_START, templates)
        second = WeekSessionGenerator.generate_week_sessions(WEEK_START, templates)

        self.assertEqual([s.id for s in first], [s.id for s in second])
        self.assertIsNot(first[0], second[0])


class SchoolYearGenerationTestCase(unittest.TestCase):
    START = date(2024, 9, 4)
    END = date(2024, 9, 30)

    def test_sessions_stay_within_the_year(self) -> None:
        templates = [make_template(), make_template(2, day_of_week=5)]

        sessions = WeekSessionGenerator.generate_school_year_sessions(
            self.START, self.END, templates
        )

        weeks = math.ceil(((self.END - self.START).days + 1) / 7) + 1
        self.assertLessEqual(len(sessions), weeks * len(templates))
        self.assertEqual(len(sessions), 8)
        for session in sessions:
            self.assertTrue(self.START <= session.session_date <= self.END)
        mondays = [s.session_date for s in sessions if s.template_id == 1]
        self.assertEqual(
            mondays,
            [date(2024, 9, 9), date(2024, 9, 16), date(2024, 9, 23), date(2024, 9, 30)],
        )

    def test_exceptions_are_applied_in_their_week(self) -> None:
        exceptions = [
            SessionExceptionUtils.create_cancellation(1, date(2024, 9, 16), "Conseil de classe"),
            SessionExceptionUtils.create_addition(
                date(2024, 9, 18),
                12,
                "B12",
                "Rattrapage",
                session_data={"class_id": "class-5a", "subject_id": "subject-maths"},
            ),
        ]

        sessions = WeekSessionGenerator.generate_school_year_sessions(
            self.START, self.END, [make_template()], exceptions
        )

        dates = [session.session_date for session in sessions]
        self.assertNotIn(date(2024, 9, 16), dates)
        self.assertEqual(dates.count(date(2024, 9, 18)), 1)
        self.assertEqual(len(sessions), 4)

    def test_session_dates_helpers(self) -> None:
        template = make_template()

        dates = WeekSessionGenerator.generate_session_dates(template, self.START, self.END)

        self.assertEqual(dates[0], date(2024, 9, 9))
        self.assertEqual(dates[-1], date(2024, 9, 30))
        self.assertEqual(
            WeekSessionGenerator.calculate_session_count(template, self.START, self.END), 4
        )


class SessionResolutionTestCase(unittest.TestCase):
    def test_dynamic_ids_are_recognised(self) -> None:
        self.assertTrue(is_dynamic_session_id("session-1-2024-09-02"))
        self.assertTrue(is_dynamic_session_id("session-tpl-a-2024-9-2"))
        self.assertFalse(is_dynamic_session_id("session-added-exception-add-abc"))
        self.assertFalse(is_dynamic_session_id("lesson-1-2024-09-02"))
        self.assertEqual(
            parse_dynamic_session_id("session-tpl-a-2024-09-02"), ("tpl-a", date(2024, 9, 2))
        )
        self.assertIsNone(parse_dynamic_session_id("session-1-2024-13-02"))

    def test_occurrence_is_rebuilt_from_its_id(self) -> None:
        templates = [make_template(), make_template(2, day_of_week=3)]

        session = WeekSessionGenerator.resolve_session("session-2-2024-09-11", templates)

        self.assertEqual(session.id, "session-2-2024-09-11")
        self.assertEqual(session.session_date, date(2024, 9, 11))
        self.assertEqual(session.template_id, 2)

    def test_malformed_or_unknown_ids_resolve_to_nothing(self) -> None:
        templates = [make_template()]

        self.assertIsNone(WeekSessionGenerator.resolve_session("session-1", templates))
        self.assertIsNone(WeekSessionGenerator.resolve_session("session-9-2024-09-02", templates))
        # Template 1 runs on Mondays only.
        self.assertIsNone(WeekSessionGenerator.resolve_session("session-1-2024-09-03", templates))

    def test_cancelled_or_moved_occurrence_resolves_to_nothing(self) -> None:
        exceptions = [
            SessionExceptionUtils.create_cancellation(1, date(2024, 9, 9), "Grève"),
            SessionExceptionUtils.create_move(1, date(2024, 9, 16), 11),
        ]

        for day in ("2024-09-09", "2024-09-16"):
            self.assertIsNone(
                WeekSessionGenerator.resolve_session(
                    f"session-1-{day}", [make_template()], exceptions
                )
            )
        self.assertIsNotNone(
            WeekSessionGenerator.resolve_session("session-1-2024-09-23", [make_template()], exceptions)
        )


class ExceptionFactoryTestCase(unittest.TestCase):
    def test_addition_owner_defaults_to_session_data(self) -> None:
        addition = SessionExceptionUtils.create_addition(
            WEEK_START, 3, "A1", "Soutien", session_data={"created_by": "teacher-2"}
        )

        self.assertEqual(addition.created_by, "teacher-2")
        explicit = SessionExceptionUtils.create_addition(
            WEEK_START, 3, "A1", "Soutien", created_by="teacher-3"
        )
        session = WeekSessionGenerator.generate_week_sessions(WEEK_START, [], [explicit])[0]
        self.assertEqual(session.created_by, "teacher-3")

    def test_identifiers_are_unique_and_typed(self) -> None:
        first = SessionExceptionUtils.create_cancellation(1, WEEK_START, "a")
        second = SessionExceptionUtils.create_cancellation(1, WEEK_START, "a")

        self.assertNotEqual(first.id, second.id)
        self.assertTrue(first.id.startswith("exception-cancel-"))
        self.assertEqual(first.type, "cancelled")

    def test_addition_has_no_template_by_default(self) -> None:
        addition = SessionExceptionUtils.create_addition(WEEK_START, 3, "A1", "Soutien")

        self.assertIsNone(addition.template_id)
        self.assertEqual(addition.type, "added")
        self.assertEqual(addition.new_time_slot_id, 3)
        self.assertTrue(addition.id.startswith("exception-add-"))


if __name__ == "__main__":
    unittest.main()
