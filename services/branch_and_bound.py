"""
Branch and Bound Study Scheduler
================================

Exact best-bound-first search over the weekly slot grid. Level i of the
decision tree decides whether slot i is studied. A node's bound is the value
already collected plus the best remaining preferences that could still fill
the required hours; nodes whose bound cannot beat the incumbent are dropped.

The bound ignores the daily cap and block-shape adjustments, so it is an
optimistic relaxation. Finished schedules are scored with the block model:

- single-hour block: -30 (penalize_single_hour_blocks)
- exactly two hours: +20 (prefer_two_hour_blocks)
- longer blocks: -(length - 2) * 40 (penalize_long_blocks)

The search polls the injected clock once per loop iteration and returns the
incumbent when the time limit is reached.
"""

import heapq
import itertools
import math
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence, Tuple

from services.schedule_grid import (
    HOURS_PER_DAY,
    NUM_DAYS,
    START_HOUR,
    WEEKDAYS,
    count_available,
    daily_counts,
    iter_blocks,
)
from utils.logging_utils import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class ScheduleConfig:
    """Constraints and scoring switches for one solve"""

    required_hours: int
    max_daily_hours: int
    time_limit_ms: float = 10000
    prefer_two_hour_blocks: bool = True
    penalize_single_hour_blocks: bool = True
    penalize_long_blocks: bool = True

    # Block-shape magnitudes
    single_hour_block_penalty: float = 30
    two_hour_block_bonus: float = 20
    long_block_penalty: float = 40  # per hour beyond two


@dataclass(frozen=True)
class SchedulingNode:
    """Immutable search-tree node; children copy the schedule"""

    level: int  # index of the last decided slot, -1 at the root
    selected_hours: int
    total_value: float
    bound: float
    schedule: Tuple[int, ...]


@dataclass
class ScheduleResult:
    schedule: List[int]
    value: float
    selected_hours: int
    execution_time_ms: float
    solution_found: bool = False
    timed_out: bool = False
    nodes_explored: int = 0
    # (elapsed_ms, value) each time the incumbent improved
    improvements: List[Tuple[float, float]] = field(default_factory=list)


class BranchAndBoundScheduler:
    """Selects exactly required_hours slots maximizing the scored schedule value"""

    def __init__(
        self,
        preferences: Sequence[float],
        config: ScheduleConfig,
        num_days: int = NUM_DAYS,
        hours_per_day: int = HOURS_PER_DAY,
        clock: Callable[[], float] = time.monotonic,
    ):
        total_slots = num_days * hours_per_day
        if len(preferences) != total_slots:
            raise ValueError(
                f"Preference vector length {len(preferences)} != {total_slots}"
            )
        if config.required_hours <= 0:
            raise ValueError("required_hours must be positive")

        self.preferences = list(preferences)
        self.config = config
        self.num_days = num_days
        self.hours_per_day = hours_per_day
        self.total_slots = total_slots
        self.clock = clock

        # Valid preferences after each level, best first, for bound lookups
        self._remaining_sorted: List[List[float]] = [[] for _ in range(total_slots + 1)]
        for level in range(total_slots - 1, -1, -1):
            tail = self._remaining_sorted[level + 1]
            if self.preferences[level] > 0:
                self._remaining_sorted[level] = sorted(
                    tail + [self.preferences[level]], reverse=True
                )
            else:
                self._remaining_sorted[level] = tail

        self._best_value = 0.0
        self._best_schedule: Tuple[int, ...] = (0,) * total_slots
        self._solution_found = False
        self._start_time = 0.0
        self._improvements: List[Tuple[float, float]] = []

    # =========================================================================
    # SCORING
    # =========================================================================

    def calculate_bound(self, node: SchedulingNode) -> float:
        """Optimistic value reachable from a partial schedule"""
        if node.selected_hours >= self.config.required_hours:
            return node.total_value

        hours_needed = self.config.required_hours - node.selected_hours
        remaining = self._remaining_sorted[node.level + 1]

        if len(remaining) < hours_needed:
            return -math.inf

        return node.total_value + sum(remaining[:hours_needed])

    def is_valid_schedule(self, schedule: Sequence[int]) -> bool:
        """Exact hours, daily cap, and no unavailable slot"""
        if sum(1 for v in schedule if v) != self.config.required_hours:
            return False

        for hours in daily_counts(schedule, self.num_days, self.hours_per_day):
            if hours > self.config.max_daily_hours:
                return False

        for i, selected in enumerate(schedule):
            if selected and self.preferences[i] <= 0:
                logger.debug(
                    "Invalid slot selected: index %d with preference %s",
                    i,
                    self.preferences[i],
                )
                return False

        return True

    def calculate_schedule_value(self, schedule: Sequence[int]) -> float:
        """Preference sum plus block-shape bonuses and penalties"""
        value = float(
            sum(self.preferences[i] for i, selected in enumerate(schedule) if selected)
        )

        cfg = self.config
        if not (
            cfg.prefer_two_hour_blocks
            or cfg.penalize_single_hour_blocks
            or cfg.penalize_long_blocks
        ):
            return value

        for _, _, length in iter_blocks(schedule, self.num_days, self.hours_per_day):
            if length == 1 and cfg.penalize_single_hour_blocks:
                value -= cfg.single_hour_block_penalty
            elif length == 2 and cfg.prefer_two_hour_blocks:
                value += cfg.two_hour_block_bonus
            elif length > 2 and cfg.penalize_long_blocks:
                value -= (length - 2) * cfg.long_block_penalty

        return value

    # =========================================================================
    # SEARCH
    # =========================================================================

    def solve(self) -> ScheduleResult:
        """Run the search until the tree is exhausted or the time limit passes"""
        self._start_time = self.clock()
        self._best_value = 0.0
        self._best_schedule = (0,) * self.total_slots
        self._solution_found = False
        self._improvements = []

        if count_available(self.preferences) < self.config.required_hours:
            logger.warning(
                "Not enough available slots (%d) for required hours (%d)",
                count_available(self.preferences),
                self.config.required_hours,
            )
            return self._build_result(nodes_explored=0, timed_out=False)

        # Ties on the bound are broken by insertion order
        counter = itertools.count()
        queue: List[Tuple[float, int, SchedulingNode]] = []

        root = SchedulingNode(-1, 0, 0.0, 0.0, (0,) * self.total_slots)
        root = self._with_bound(root)
        heapq.heappush(queue, (-root.bound, next(counter), root))

        nodes_explored = 0
        timed_out = False

        while queue:
            if self._elapsed_ms() >= self.config.time_limit_ms:
                timed_out = True
                break

            _, _, node = heapq.heappop(queue)
            nodes_explored += 1

            if node.bound <= self._best_value:
                continue

            if node.level >= self.total_slots - 1:
                self._consider(node.schedule)
                continue

            next_level = node.level + 1

            include = self._include_child(node, next_level)
            if include is not None:
                if include.selected_hours == self.config.required_hours:
                    self._consider(include.schedule)
                else:
                    include = self._with_bound(include)
                    if include.bound > self._best_value:
                        heapq.heappush(queue, (-include.bound, next(counter), include))

            exclude = self._with_bound(
                SchedulingNode(
                    next_level, node.selected_hours, node.total_value, 0.0, node.schedule
                )
            )
            if exclude.bound > self._best_value:
                heapq.heappush(queue, (-exclude.bound, next(counter), exclude))

        if timed_out:
            logger.info(
                "Branch and bound stopped at time limit (%sms) with %d live nodes",
                self.config.time_limit_ms,
                len(queue),
            )

        return self._build_result(nodes_explored=nodes_explored, timed_out=timed_out)

    def _include_child(
        self, node: SchedulingNode, next_level: int
    ) -> Optional[SchedulingNode]:
        if self.preferences[next_level] <= 0:
            return None
        if node.selected_hours >= self.config.required_hours:
            return None

        day = next_level // self.hours_per_day
        day_start = day * self.hours_per_day
        daily_hours = sum(node.schedule[day_start:next_level])
        if daily_hours >= self.config.max_daily_hours:
            return None

        schedule = node.schedule[:next_level] + (1,) + node.schedule[next_level + 1:]
        return SchedulingNode(
            next_level,
            node.selected_hours + 1,
            node.total_value + self.preferences[next_level],
            0.0,
            schedule,
        )

    def _with_bound(self, node: SchedulingNode) -> SchedulingNode:
        return SchedulingNode(
            node.level,
            node.selected_hours,
            node.total_value,
            self.calculate_bound(node),
            node.schedule,
        )

    def _consider(self, schedule: Tuple[int, ...]):
        """Score a complete schedule and keep it if it beats the incumbent"""
        if not self.is_valid_schedule(schedule):
            return

        value = self.calculate_schedule_value(schedule)
        if value > self._best_value:
            self._best_value = value
            self._best_schedule = schedule
            self._solution_found = True
            self._improvements.append((self._elapsed_ms(), value))
            logger.debug("New incumbent with value %.2f", value)

    def _elapsed_ms(self) -> float:
        return (self.clock() - self._start_time) * 1000

    def _build_result(self, nodes_explored: int, timed_out: bool) -> ScheduleResult:
        schedule = list(self._best_schedule)
        return ScheduleResult(
            schedule=schedule,
            value=self._best_value,
            selected_hours=sum(schedule),
            execution_time_ms=self._elapsed_ms(),
            solution_found=self._solution_found,
            timed_out=timed_out,
            nodes_explored=nodes_explored,
            improvements=list(self._improvements),
        )


def pretty_print(
    schedule: Sequence[int],
    preferences: Sequence[float],
    weekdays: Sequence[str] = WEEKDAYS,
    hours_per_day: int = HOURS_PER_DAY,
) -> str:
    """Grid rendering of a schedule: hours, X for selected, preference values"""
    lines = []
    for day, name in enumerate(weekdays):
        start = day * hours_per_day
        hours = " | ".join(f"{START_HOUR + h:02d}" for h in range(hours_per_day))
        marks = " | ".join(
            ("X" if schedule[start + h] else " ").ljust(2) for h in range(hours_per_day)
        )
        prefs = " | ".join(
            str(preferences[start + h]).ljust(2) for h in range(hours_per_day)
        )
        lines.append(f"{name}:")
        lines.append(f"   | {hours} |")
        lines.append(f"   | {marks} |")
        lines.append(f"   | {prefs} |")
        lines.append("")
    return "\n".join(lines)
