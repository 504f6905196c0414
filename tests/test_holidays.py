"""Tests for generated holiday tasks."""

from datetime import date, datetime, timezone

from balanceflow.recurrence.holidays import holidays_for_years, us_federal_holidays

UTC = timezone.utc


class TestUSFederalHolidays:
    """Fixed and floating federal holidays."""

    def test_ten_holidays_per_year(self):
        assert len(us_federal_holidays(2024)) == 10

    def test_floating_dates_2024(self):
        by_title = {h.title: h.start_time.date() for h in us_federal_holidays(2024)}
        assert by_title["Martin Luther King, Jr. Day"] == date(2024, 1, 15)
        assert by_title["Presidents' Day"] == date(2024, 2, 19)
        assert by_title["Memorial Day"] == date(2024, 5, 27)
        assert by_title["Labor Day"] == date(2024, 9, 2)
        assert by_title["Columbus Day"] == date(2024, 10, 14)
        assert by_title["Thanksgiving Day"] == date(2024, 11, 28)

    def test_holiday_task_shape(self):
        christmas = us_federal_holidays(2025)[-1]
        assert christmas.id == "holiday-christmas-day-2025"
        assert christmas.is_holiday is True
        assert christmas.duration == 1440
        assert christmas.priority == "High"
        assert christmas.recurrence == "none"
        assert christmas.start_time == datetime(2025, 12, 25, tzinfo=UTC)

    def test_ids_are_unique_across_years(self):
        ids = [h.id for h in holidays_for_years([2024, 2025])]
        assert len(ids) == len(set(ids)) == 20
