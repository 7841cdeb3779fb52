import unittest
from datetime import date, timedelta
from types import SimpleNamespace

from carnet.periods import PeriodCalculator, PeriodStructureError
from carnet.presets import distribution_for_year, get_preset


def make_year(start: date, end: date, year_id: int = 1) -> SimpleNamespace:
    return SimpleNamespace(id=year_id, start_date=start, end_date=end)


def make_structure(count: int, names: dict[str, str] | None = None) -> SimpleNamespace:
    if names is None:
        names = {str(order): f"T{order}" for order in range(1, count + 1)}
    return SimpleNamespace(period_model="trimestre", periods_per_year=count, period_names=names)


class GeneratePeriodsTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.year = make_year(date(2024, 9, 2), date(2025, 6, 30))

    def test_trimesters_chain_without_gaps(self) -> None:
        periods = PeriodCalculator.generate_periods(
            self.year, make_structure(3), "teacher-1", today=date(2025, 1, 15)
        )

        self.assertEqual(len(periods), 3)
        self.assertEqual(periods[0].start_date, date(2024, 9, 2))
        self.assertEqual(periods[0].end_date, date(2024, 12, 11))
        self.assertEqual(periods[1].start_date, date(2024, 12, 12))
        self.assertEqual(periods[1].end_date, date(2025, 3, 21))
        self.assertEqual(periods[2].start_date, date(2025, 3, 22))
        self.assertEqual(periods[2].end_date, date(2025, 6, 30))
        for previous, current in zip(periods, periods[1:]):
            self.assertEqual(current.start_date, previous.end_date + timedelta(days=1))

    def test_period_lengths_differ_by_at_most_one_day(self) -> None:
        for count in range(1, 9):
            periods = PeriodCalculator.generate_periods(
                self.year, make_structure(count), "teacher-1"
            )
            lengths = [(p.end_date - p.start_date).days + 1 for p in periods]
            self.assertEqual(len(periods), count)
            self.assertLessEqual(max(lengths) - min(lengths), 1, lengths)
            self.assertEqual(periods[-1].end_date, self.year.end_date)

    def test_identifiers_names_and_active_flag(self) -> None:
        periods = PeriodCalculator.generate_periods(
            self.year,
            make_structure(3, {"1": "Automne", "2": " ", "3": "Printemps"}),
            "teacher-1",
            today=date(2025, 1, 15),
        )

        self.assertEqual(periods[0].id, "period-trimestre-1-1")
        self.assertEqual([p.name for p in periods], ["Automne", "Période 2", "Printemps"])
        self.assertEqual([p.is_active for p in periods], [False, True, False])
        self.assertEqual({p.created_by for p in periods}, {"teacher-1"})

    def test_generation_is_repeatable(self) -> None:
        first = PeriodCalculator.generate_periods(
            self.year, make_structure(4), "teacher-1", today=date(2024, 10, 1)
        )
        second = PeriodCalculator.generate_periods(
            self.year, make_structure(4), "teacher-1", today=date(2024, 10, 1)
        )

        def comparable(period):
            return (
                period.id,
                period.name,
                period.order,
                period.start_date,
                period.end_date,
                period.is_active,
            )

        self.assertEqual([comparable(p) for p in first], [comparable(p) for p in second])
        self.assertIsNot(first[0], second[0])

    def test_non_positive_period_count_is_rejected(self) -> None:
        with self.assertRaises(PeriodStructureError):
            PeriodCalculator.generate_periods(self.year, make_structure(0), "teacher-1")

    def test_year_shorter_than_period_count_is_rejected(self) -> None:
        year = make_year(date(2024, 9, 2), date(2024, 9, 4))

        with self.assertRaises(PeriodStructureError):
            PeriodCalculator.generate_periods(year, make_structure(3), "teacher-1")
        with self.assertRaises(PeriodStructureError):
            PeriodCalculator.calculate_structure_stats(make_structure(3), year)

    def test_one_day_per_period_still_chains(self) -> None:
        year = make_year(date(2024, 9, 2), date(2024, 9, 5))

        periods = PeriodCalculator.generate_periods(year, make_structure(3), "teacher-1")

        self.assertEqual(
            [(p.start_date, p.end_date) for p in periods],
            [
                (date(2024, 9, 2), date(2024, 9, 2)),
                (date(2024, 9, 3), date(2024, 9, 3)),
                (date(2024, 9, 4), date(2024, 9, 5)),
            ],
        )

    def test_custom_dates_follow_the_preset(self) -> None:
        preset = get_preset("semestre")
        year = make_year(date(2025, 9, 1), date(2026, 6, 30), year_id=7)
        periods = PeriodCalculator.generate_periods_with_custom_dates(
            year,
            make_structure(2, preset["period_names"]),
            "teacher-1",
            preset["distribution"],
            today=date(2026, 3, 1),
        )

        self.assertEqual([p.name for p in periods], ["1er Semestre", "2ème Semestre"])
        self.assertEqual(periods[0].end_date, date(2026, 1, 31))
        self.assertEqual(periods[1].start_date, date(2026, 2, 1))
        self.assertEqual(periods[1].id, "period-trimestre-2-7")
        self.assertTrue(periods[1].is_active)


class PresetDistributionTestCase(unittest.TestCase):
    def test_reference_year_is_unchanged(self) -> None:
        preset = get_preset("trimestre")

        distribution = distribution_for_year(preset, date(2025, 9, 1), date(2026, 6, 30))

        self.assertEqual(distribution, preset["distribution"])

    def test_calendar_moves_to_an_earlier_year_and_is_clipped(self) -> None:
        distribution = distribution_for_year(
            get_preset("trimestre"), date(2024, 9, 2), date(2025, 6, 30)
        )

        self.assertEqual(
            distribution,
            [
                {"start": "2024-09-02", "end": "2024-12-20"},
                {"start": "2025-01-06", "end": "2025-03-28"},
                {"start": "2025-04-14", "end": "2025-06-30"},
            ],
        )

    def test_month_ends_follow_leap_years(self) -> None:
        distribution = distribution_for_year(
            get_preset("quartier"), date(2027, 9, 1), date(2028, 6, 30)
        )

        self.assertEqual(distribution[1], {"start": "2027-12-01", "end": "2028-02-29"})
        self.assertEqual(distribution[2]["start"], "2028-03-01")
        self.assertEqual(distribution[3], {"start": "2028-06-01", "end": "2028-06-30"})

    def test_period_outside_a_short_year_is_rejected(self) -> None:
        with self.assertRaises(PeriodStructureError):
            distribution_for_year(get_preset("trimestre"), date(2024, 9, 2), date(2024, 10, 15))


class ValidationAndStatsTestCase(unittest.TestCase):
    def test_short_year_is_reported(self) -> None:
        year = make_year(date(2024, 9, 2), date(2024, 9, 12))

        report = PeriodCalculator.validate_structure_for_school_year(make_structure(5), year)

        self.assertFalse(report.is_valid)
        self.assertEqual(len(report.errors), 1)
        self.assertIn("10 jours", report.errors[0])
        self.assertIn("5 périodes", report.errors[0])

    def test_all_problems_are_collected(self) -> None:
        year = make_year(date(2024, 9, 2), date(2024, 9, 12))

        report = PeriodCalculator.validate_structure_for_school_year(
            make_structure(3, {"1": "T1"}), year
        )

        self.assertFalse(report.is_valid)
        self.assertEqual(len(report.errors), 3)
        self.assertIn("période 2", report.errors[1])
        self.assertIn("période 3", report.errors[2])

    def test_valid_structure(self) -> None:
        year = make_year(date(2024, 9, 2), date(2025, 6, 30))

        report = PeriodCalculator.validate_structure_for_school_year(make_structure(3), year)

        self.assertTrue(report.is_valid)
        self.assertEqual(report.errors, [])

    def test_stats_report_shares(self) -> None:
        year = make_year(date(2024, 9, 2), date(2025, 6, 30))

        stats = PeriodCalculator.calculate_structure_stats(make_structure(3), year)

        self.assertEqual(stats.total_days, 301)
        self.assertEqual(stats.average_days_per_period, 100)
        self.assertEqual([share.days for share in stats.periods_info], [101, 100, 101])
        self.assertEqual([share.percentage for share in stats.periods_info], [34, 33, 34])
        self.assertEqual(stats.periods_info[0].name, "T1")


class PeriodLookupTestCase(unittest.TestCase):
    def setUp(self) -> None:
        year = make_year(date(2024, 9, 2), date(2025, 6, 30))
        self.periods = PeriodCalculator.generate_periods(year, make_structure(3), "teacher-1")

    def test_active_period_includes_end_date(self) -> None:
        active = PeriodCalculator.find_active_period(self.periods, date(2024, 12, 11))
        self.assertEqual(active.order, 1)
        active = PeriodCalculator.find_active_period(self.periods, date(2024, 12, 12))
        self.assertEqual(active.order, 2)

    def test_no_active_period_outside_the_year(self) -> None:
        self.assertIsNone(PeriodCalculator.find_active_period(self.periods, date(2025, 7, 14)))

    def test_next_and_previous_periods(self) -> None:
        shuffled = [self.periods[2], self.periods[0], self.periods[1]]

        self.assertEqual(PeriodCalculator.get_next_period(shuffled, date(2024, 12, 11)).order, 2)
        self.assertEqual(PeriodCalculator.get_previous_period(shuffled, date(2025, 3, 22)).order, 2)
        self.assertIsNone(PeriodCalculator.get_previous_period(shuffled, date(2024, 9, 2)))
        self.assertIsNone(PeriodCalculator.get_next_period(shuffled, date(2025, 3, 22)))
        self.assertEqual([p.order for p in shuffled], [3, 1, 2])


if __name__ == "__main__":
    unittest.main()
