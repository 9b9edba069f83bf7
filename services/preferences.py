"""
Preference vector generation and day selection for the study-session optimizer.
"""

from enum import Enum
from typing import List, Optional, Sequence

from services.optimizer import OptimizerConfig
from services.schedule_grid import HOURS_PER_DAY, NUM_DAYS, START_HOUR, TOTAL_SLOTS
from utils.logging_utils import get_logger

logger = get_logger(__name__)


class TimeOfDay(Enum):
    MORNING = "MORNING"
    EVENING = "EVENING"

    @classmethod
    def parse(cls, value) -> Optional["TimeOfDay"]:
        """Lenient lookup; unknown or empty values mean no preference"""
        if isinstance(value, cls):
            return value
        if not value:
            return None
        try:
            return cls(str(value).upper())
        except ValueError:
            logger.warning("Unknown time-of-day preference: %s", value)
            return None


def _tier(hour: int, time_of_day: TimeOfDay) -> int:
    if time_of_day == TimeOfDay.MORNING:
        if 8 <= hour <= 12:
            return 9
        if 13 <= hour <= 15:
            return 6
        if 16 <= hour <= 18:
            return 4
        return 2

    if 18 <= hour <= 22:
        return 9
    if 15 <= hour <= 17:
        return 6
    if 12 <= hour <= 14:
        return 4
    return 2


def apply_time_of_day_preference(
    availability: Optional[Sequence[float]],
    time_of_day,
    hours_per_day: int = HOURS_PER_DAY,
) -> List[float]:
    """
    Overwrite every available slot with a tiered score for the preferred
    time of day. Unavailable slots (0) are left untouched.

    Args:
        availability: 0/1 vector; all slots available when omitted
        time_of_day: TimeOfDay or its name; no preference leaves the vector as is
    """
    vector = list(availability) if availability is not None else [1] * TOTAL_SLOTS

    preference = TimeOfDay.parse(time_of_day)
    if preference is None:
        return vector

    for index, value in enumerate(vector):
        if value != 0:
            hour = START_HOUR + index % hours_per_day
            vector[index] = _tier(hour, preference)

    return vector


def get_available_days(
    weekdays: Sequence[str],
    vector: Sequence[float],
    hours_per_day: int = HOURS_PER_DAY,
) -> List[str]:
    """Days with at least one positive-preference slot"""
    return [
        day
        for day_index, day in enumerate(weekdays)
        if any(
            v > 0
            for v in vector[day_index * hours_per_day:(day_index + 1) * hours_per_day]
        )
    ]


def slice_days(
    vector: Sequence[float],
    day_indices: Sequence[int],
    hours_per_day: int = HOURS_PER_DAY,
) -> List[float]:
    """Concatenate the rows of the given days into a compressed vector"""
    sliced = []
    for day_index in day_indices:
        sliced.extend(vector[day_index * hours_per_day:(day_index + 1) * hours_per_day])
    return sliced


def create_optimizer_config(
    num_days: int,
    total_study_hours: int,
    max_hours_per_day: int,
    population_size: int = 50,
    generations: int = 100,
    delta: float = 0.009,
    hours_per_day: int = HOURS_PER_DAY,
) -> OptimizerConfig:
    """DFO config for a grid of num_days rows (8am to 10pm)"""
    if num_days < 0 or num_days > NUM_DAYS:
        raise ValueError(f"num_days must be between 0 and {NUM_DAYS}")

    return OptimizerConfig(
        num_days=num_days,
        hours_per_day=hours_per_day,
        total_hours=num_days * hours_per_day,
        required_study_hours=total_study_hours,
        max_daily_hours=max_hours_per_day,
        population_size=population_size,
        generations=generations,
        delta=delta,
    )
