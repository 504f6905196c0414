"""Tests for AI exclusion enforcement (trust-critical).

These tests verify that private and holiday tasks are never sent to the AI assistant.
"""

from balanceflow.engine.ai_exclusion import is_ai_excluded, filter_ai_excluded


class TestIsAIExcluded:
    """Test is_ai_excluded() function."""

    def test_task_with_period_prefix_title_is_excluded(self, make_task):
        """Task with title starting with '.' should be excluded."""
        assert is_ai_excluded(make_task(title=".Private task")) is True

    def test_holiday_task_is_excluded(self, make_task):
        """Generated holidays never reach the assistant."""
        assert is_ai_excluded(make_task(isHoliday=True)) is True

    def test_normal_task_is_not_excluded(self, sample_task):
        assert is_ai_excluded(sample_task) is False

    def test_task_with_period_in_middle_not_excluded(self, make_task):
        assert is_ai_excluded(make_task(title="Task.Private")) is False

    def test_task_with_period_and_space_is_excluded(self, make_task):
        assert is_ai_excluded(make_task(title=". Private task")) is True


class TestFilterAIExcluded:
    """Test filter_ai_excluded() function."""

    def test_separates_excluded_and_allowed_tasks(self, make_task):
        task1 = make_task(id="1", title="Normal Task")
        task2 = make_task(id="2", title=".Private Task")
        task3 = make_task(id="3", title="Independence Day", isHoliday=True)
        task4 = make_task(id="4", title="Public Task")

        ai_allowed, ai_excluded = filter_ai_excluded([task1, task2, task3, task4])

        assert ai_allowed == [task1, task4]
        assert ai_excluded == [task2, task3]

    def test_empty_input(self):
        assert filter_ai_excluded([]) == ([], [])
