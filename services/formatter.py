"""
Turns binary slot selections into day/hour records and study sessions.
"""

from dataclasses import asdict, dataclass
from typing import Dict, List, Optional, Sequence

from services.schedule_grid import HOURS_PER_DAY, START_HOUR, WEEKDAYS

DEFAULT_COURSE = "General Study"


@dataclass(frozen=True)
class StudySession:
    day: str
    start_time: str
    end_time: str
    course: str

    def to_dict(self) -> Dict:
        return {
            "day": self.day,
            "startTime": self.start_time,
            "endTime": self.end_time,
            "course": self.course,
        }


@dataclass(frozen=True)
class TimeSlot:
    day: str
    hour: int  # clock hour

    def to_dict(self) -> Dict:
        return asdict(self)


def _check_length(schedule: Sequence[int], weekdays: Sequence[str], hours_per_day: int):
    expected = len(weekdays) * hours_per_day
    if len(schedule) != expected:
        raise ValueError(
            f"Schedule length {len(schedule)} does not match "
            f"{len(weekdays)} days x {hours_per_day} hours"
        )


def _clock(hour: int) -> str:
    return f"{hour:02d}:00"


def schedule_to_time_slots(
    schedule: Sequence[int],
    weekdays: Sequence[str] = WEEKDAYS,
    hours_per_day: int = HOURS_PER_DAY,
    start_hour: int = START_HOUR,
) -> List[TimeSlot]:
    """Selected slots as (day name, clock hour), in vector order"""
    _check_length(schedule, weekdays, hours_per_day)
    return [
        TimeSlot(day=weekdays[i // hours_per_day], hour=start_hour + i % hours_per_day)
        for i, selected in enumerate(schedule)
        if selected == 1
    ]


def format_study_sessions(
    weekdays: Sequence[str],
    solution: Sequence[int],
    hours_per_day: int = HOURS_PER_DAY,
    courses: Optional[Sequence[str]] = None,
    start_hour: int = START_HOUR,
) -> List[StudySession]:
    """One-hour sessions with courses assigned round-robin in slot order"""
    _check_length(solution, weekdays, hours_per_day)
    courses = list(courses or [])

    sessions = []
    for slot in schedule_to_time_slots(solution, weekdays, hours_per_day, start_hour):
        if courses:
            course = courses[len(sessions) % len(courses)]
        else:
            course = DEFAULT_COURSE
        sessions.append(
            StudySession(
                day=slot.day,
                start_time=_clock(slot.hour),
                end_time=_clock(slot.hour + 1),
                course=course,
            )
        )
    return sessions


def extract_study_slots(
    schedule: Sequence[int], weekdays: Sequence[str], hours_per_day: int = HOURS_PER_DAY
) -> Dict[str, List[int]]:
    """Selected hour offsets grouped by day; days without study are omitted"""
    _check_length(schedule, weekdays, hours_per_day)
    slots: Dict[str, List[int]] = {}
    for i, selected in enumerate(schedule):
        if selected == 1:
            slots.setdefault(weekdays[i // hours_per_day], []).append(i % hours_per_day)
    return slots


def find_unavailable_selections(
    schedule: Sequence[int], preferences: Sequence[float]
) -> List[int]:
    """Indices selected although the preference marks them unavailable"""
    if len(schedule) != len(preferences):
        raise ValueError(
            f"Schedule length {len(schedule)} != preference length {len(preferences)}"
        )
    return [
        i for i, selected in enumerate(schedule) if selected == 1 and preferences[i] <= 0
    ]
