"""
Weekly slot grid shared by every scheduler.

A preference vector holds one score per hour slot, laid out day by day:
index = day_index * HOURS_PER_DAY + (hour - START_HOUR). A score of 0 marks
the slot unavailable; positive scores are relative preference strength.
"""

import json
from typing import Iterator, List, Sequence, Tuple

from errors import InvalidInputError

WEEKDAYS = [
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
    "Sunday",
]

NUM_DAYS = 7
HOURS_PER_DAY = 15  # 8:00 to 22:00
START_HOUR = 8
TOTAL_SLOTS = NUM_DAYS * HOURS_PER_DAY  # 105


def slot_index(day_index: int, hour: int, hours_per_day: int = HOURS_PER_DAY) -> int:
    """Vector index for a day and a clock hour"""
    return day_index * hours_per_day + (hour - START_HOUR)


def slot_position(index: int, hours_per_day: int = HOURS_PER_DAY) -> Tuple[int, int]:
    """(day_index, hour offset within the day) for a vector index"""
    return index // hours_per_day, index % hours_per_day


def count_available(preferences: Sequence[float]) -> int:
    return sum(1 for p in preferences if p > 0)


def daily_counts(
    schedule: Sequence[int], num_days: int, hours_per_day: int = HOURS_PER_DAY
) -> List[int]:
    """Selected hours per day"""
    return [
        sum(1 for v in schedule[day * hours_per_day:(day + 1) * hours_per_day] if v)
        for day in range(num_days)
    ]


def iter_blocks(
    schedule: Sequence[int], num_days: int, hours_per_day: int = HOURS_PER_DAY
) -> Iterator[Tuple[int, int, int]]:
    """Yield (day, start offset, length) for every maximal run of selected slots.

    Each day row is scanned left to right; a block is flushed at the first gap
    or at the end of the day, so blocks never span midnight.
    """
    for day in range(num_days):
        day_start = day * hours_per_day
        block_length = 0
        for hour in range(hours_per_day):
            if schedule[day_start + hour]:
                block_length += 1
            elif block_length > 0:
                yield day, hour - block_length, block_length
                block_length = 0

        if block_length > 0:
            yield day, hours_per_day - block_length, block_length


def parse_preference_vector(raw) -> List[float]:
    """Accept a JSON-encoded string or a native list of numbers"""
    if raw is None:
        raise InvalidInputError("No preference vector provided", field="preferenceVector")

    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as e:
            raise InvalidInputError(
                f"Invalid preference vector format: {e.msg}", field="preferenceVector"
            ) from e

    if not isinstance(raw, list):
        raise InvalidInputError("Invalid preference vector format", field="preferenceVector")

    values = []
    for value in raw:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise InvalidInputError(
                "Preference vector must contain only numbers", field="preferenceVector"
            )
        values.append(value)

    return values
