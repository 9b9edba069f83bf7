"""
Tests for the branch-and-bound scheduler.
"""

import pytest

from services.branch_and_bound import BranchAndBoundScheduler, ScheduleConfig, pretty_print
from services.schedule_grid import HOURS_PER_DAY, TOTAL_SLOTS, daily_counts


def weekday_mornings_vector():
    """Monday-Friday, hours 9-12 (offsets 1-4) at preference 5."""
    prefs = [0] * TOTAL_SLOTS
    for day in range(5):
        for offset in range(1, 5):
            prefs[day * HOURS_PER_DAY + offset] = 5
    return prefs


def test_weekday_mornings_schedule_meets_all_constraints(fake_clock):
    """Exactly 8 hours, at most 2 per day, only on preferred slots."""
    prefs = weekday_mornings_vector()
    config = ScheduleConfig(required_hours=8, max_daily_hours=2, time_limit_ms=5000)
    scheduler = BranchAndBoundScheduler(prefs, config, clock=fake_clock)

    result = scheduler.solve()

    assert result.solution_found
    assert not result.timed_out
    assert result.selected_hours == 8
    assert sum(result.schedule) == 8
    assert all(hours <= 2 for hours in daily_counts(result.schedule, 7))
    assert all(prefs[i] > 0 for i, v in enumerate(result.schedule) if v)
    assert result.value == scheduler.calculate_schedule_value(result.schedule)
    assert result.value >= 40


def test_incumbent_improves_monotonically(fake_clock):
    prefs = weekday_mornings_vector()
    config = ScheduleConfig(required_hours=8, max_daily_hours=2, time_limit_ms=5000)
    result = BranchAndBoundScheduler(prefs, config, clock=fake_clock).solve()

    values = [value for _, value in result.improvements]
    assert values
    assert values == sorted(values)
    assert len(set(values)) == len(values)
    assert values[-1] == result.value


def test_no_available_slots_returns_empty_without_search(fake_clock):
    config = ScheduleConfig(required_hours=5, max_daily_hours=4)
    result = BranchAndBoundScheduler([0] * TOTAL_SLOTS, config, clock=fake_clock).solve()

    assert not result.solution_found
    assert result.nodes_explored == 0
    assert result.value == 0
    assert sum(result.schedule) == 0


def test_small_grid_prefers_two_hour_block(fake_clock):
    """Adjacent 5s with the block bonus beat the single 9."""
    prefs = [1, 5, 5, 1, 9, 0, 0, 0]
    config = ScheduleConfig(required_hours=2, max_daily_hours=2)
    scheduler = BranchAndBoundScheduler(
        prefs, config, num_days=2, hours_per_day=4, clock=fake_clock
    )

    result = scheduler.solve()

    assert result.schedule == [0, 1, 1, 0, 0, 0, 0, 0]
    assert result.value == 30


def test_time_limit_returns_incumbent(fake_clock):
    """A clock that jumps a second per read stops the search immediately."""
    fake_clock.step = 1.0
    prefs = weekday_mornings_vector()
    config = ScheduleConfig(required_hours=8, max_daily_hours=2, time_limit_ms=5)
    result = BranchAndBoundScheduler(prefs, config, clock=fake_clock).solve()

    assert result.timed_out
    assert not result.solution_found
    assert result.schedule == [0] * TOTAL_SLOTS


class TestScheduleValue:
    def setup_method(self):
        self.prefs = [3] * TOTAL_SLOTS
        self.scheduler = BranchAndBoundScheduler(
            self.prefs, ScheduleConfig(required_hours=2, max_daily_hours=4)
        )

    def test_two_hour_block_gets_bonus(self):
        schedule = [0] * TOTAL_SLOTS
        schedule[3] = schedule[4] = 1
        assert self.scheduler.calculate_schedule_value(schedule) == 3 + 3 + 20

    def test_single_hour_block_penalized(self):
        schedule = [0] * TOTAL_SLOTS
        schedule[0] = 1
        assert self.scheduler.calculate_schedule_value(schedule) == 3 - 30

    def test_long_block_penalized_per_extra_hour(self):
        schedule = [0] * TOTAL_SLOTS
        for i in range(5, 9):
            schedule[i] = 1
        assert self.scheduler.calculate_schedule_value(schedule) == 12 - 2 * 40

    def test_block_ending_the_day_is_counted(self):
        schedule = [0] * TOTAL_SLOTS
        schedule[HOURS_PER_DAY - 2] = schedule[HOURS_PER_DAY - 1] = 1
        assert self.scheduler.calculate_schedule_value(schedule) == 26

    def test_blocks_do_not_span_days(self):
        schedule = [0] * TOTAL_SLOTS
        schedule[HOURS_PER_DAY - 1] = schedule[HOURS_PER_DAY] = 1
        assert self.scheduler.calculate_schedule_value(schedule) == 6 - 60

    def test_flags_off_is_plain_sum(self):
        scheduler = BranchAndBoundScheduler(
            self.prefs,
            ScheduleConfig(
                required_hours=2,
                max_daily_hours=4,
                prefer_two_hour_blocks=False,
                penalize_single_hour_blocks=False,
                penalize_long_blocks=False,
            ),
        )
        schedule = [0] * TOTAL_SLOTS
        schedule[0] = 1
        schedule[3] = schedule[4] = 1
        assert scheduler.calculate_schedule_value(schedule) == 9


class TestValidity:
    def test_rejects_wrong_hour_count_and_cap_and_unavailable(self):
        prefs = [1] * TOTAL_SLOTS
        prefs[10] = 0
        scheduler = BranchAndBoundScheduler(
            prefs, ScheduleConfig(required_hours=3, max_daily_hours=2)
        )

        two_hours = [0] * TOTAL_SLOTS
        two_hours[0] = two_hours[1] = 1
        assert not scheduler.is_valid_schedule(two_hours)

        over_cap = [0] * TOTAL_SLOTS
        over_cap[0] = over_cap[1] = over_cap[2] = 1
        assert not scheduler.is_valid_schedule(over_cap)

        unavailable = [0] * TOTAL_SLOTS
        unavailable[0] = unavailable[HOURS_PER_DAY] = unavailable[10] = 1
        assert not scheduler.is_valid_schedule(unavailable)

        valid = [0] * TOTAL_SLOTS
        valid[0] = valid[1] = valid[HOURS_PER_DAY] = 1
        assert scheduler.is_valid_schedule(valid)

    def test_bound_is_minus_infinity_when_too_few_slots_remain(self):
        from services.branch_and_bound import SchedulingNode

        prefs = [0] * TOTAL_SLOTS
        prefs[0] = prefs[1] = 4
        scheduler = BranchAndBoundScheduler(
            prefs, ScheduleConfig(required_hours=2, max_daily_hours=2)
        )
        node = SchedulingNode(0, 0, 0.0, 0.0, (0,) * TOTAL_SLOTS)
        assert scheduler.calculate_bound(node) == float("-inf")

        root = SchedulingNode(-1, 0, 0.0, 0.0, (0,) * TOTAL_SLOTS)
        assert scheduler.calculate_bound(root) == 8


def test_constructor_rejects_bad_input():
    with pytest.raises(ValueError):
        BranchAndBoundScheduler([1] * 10, ScheduleConfig(required_hours=2, max_daily_hours=2))
    with pytest.raises(ValueError):
        BranchAndBoundScheduler(
            [1] * TOTAL_SLOTS, ScheduleConfig(required_hours=0, max_daily_hours=2)
        )


def test_pretty_print_marks_selected_slots():
    schedule = [0] * TOTAL_SLOTS
    schedule[0] = 1
    text = pretty_print(schedule, [1] * TOTAL_SLOTS)
    assert text.startswith("Monday:")
    assert "X" in text.splitlines()[2]
