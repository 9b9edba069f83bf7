"""
Payload-level entrypoints: validate input, run an algorithm, shape the output.

Nothing here knows about HTTP. Validation failures raise InvalidInputError;
the blueprint maps them to 400 responses.
"""

import logging
import random
import time
from typing import Callable, Dict, List, Mapping, Optional

from errors import InvalidInputError, PersistenceError
from models import save_scheduled_review
from services.branch_and_bound import BranchAndBoundScheduler, ScheduleConfig, pretty_print
from services.formatter import (
    extract_study_slots,
    find_unavailable_selections,
    format_study_sessions,
    schedule_to_time_slots,
)
from services.optimizer import FitnessEvaluator, FitnessWeights, PopulationOptimizer
from services.preferences import (
    apply_time_of_day_preference,
    create_optimizer_config,
    get_available_days,
    slice_days,
)
from services.schedule_grid import (
    HOURS_PER_DAY,
    START_HOUR,
    TOTAL_SLOTS,
    WEEKDAYS,
    count_available,
    parse_preference_vector,
)
from services.spaced_repetition import explain_half_life
from utils.datetime_utils import Clock, ensure_timezone_aware, now_utc
from utils.logging_utils import get_logger, log_with_context

logger = get_logger(__name__)

DEFAULTS = {
    "DEFAULT_REQUIRED_HOURS": 14,
    "DEFAULT_MAX_DAILY_HOURS": 4,
    "DEFAULT_TIME_LIMIT_MS": 10000,
    "STUDY_SESSION_REQUIRED_HOURS": 16,
    "POPULATION_SIZE": 50,
    "GENERATIONS": 100,
    "DELTA": 0.009,
    "SINGLE_HOUR_BLOCK_PENALTY": 30,
    "LONG_BLOCK_PENALTY": 40,
    "TWO_HOUR_BLOCK_BONUS": 20,
}

BLOCK_FLAGS = {
    "preferTwoHourBlocks": "prefer_two_hour_blocks",
    "penalizeSingleHourBlocks": "penalize_single_hour_blocks",
    "penalizeLongBlocks": "penalize_long_blocks",
}


def _setting(settings: Optional[Mapping], key: str):
    if settings is not None and key in settings:
        return settings[key]
    return DEFAULTS[key]


def _number(payload: Mapping, key: str, default, cast=int):
    value = payload.get(key)
    if value is None:
        return default
    if isinstance(value, bool):
        raise InvalidInputError(f"{key} must be a number", field=key)
    try:
        return cast(value)
    except (TypeError, ValueError) as e:
        raise InvalidInputError(f"{key} must be a number", field=key) from e


def _preference_vector(raw) -> List[float]:
    vector = parse_preference_vector(raw)
    if not vector:
        raise InvalidInputError("Empty preference vector", field="preferenceVector")
    if len(vector) != TOTAL_SLOTS:
        raise InvalidInputError(
            f"Preference vector length mismatch: {len(vector)} != {TOTAL_SLOTS}",
            field="preferenceVector",
        )
    return vector


# =============================================================================
# BRANCH AND BOUND
# =============================================================================


def run_branch_and_bound(
    payload: Mapping,
    settings: Optional[Mapping] = None,
    clock: Callable[[], float] = time.monotonic,
) -> Dict:
    """
    Exact schedule for a 105-slot preference vector.

    Returns {"timeSlots": [{"day", "hour"}, ...]}; the list is empty when
    fewer slots are available than hours required.
    """
    if payload is None:
        raise InvalidInputError("No preference vector provided", field="preferenceVector")

    vector = parse_preference_vector(payload.get("preferenceVector"))
    if not vector:
        raise InvalidInputError("Empty preference vector", field="preferenceVector")

    required_hours = _number(
        payload, "requiredHours", _setting(settings, "DEFAULT_REQUIRED_HOURS")
    )
    if required_hours <= 0:
        raise InvalidInputError("Invalid required hours", field="requiredHours")

    if len(vector) != TOTAL_SLOTS:
        raise InvalidInputError(
            f"Preference vector length mismatch: {len(vector)} != {TOTAL_SLOTS}",
            field="preferenceVector",
        )

    available = count_available(vector)
    if available < required_hours:
        logger.warning(
            "Not enough available slots (%d) to satisfy required hours (%d)",
            available,
            required_hours,
        )
        return {"timeSlots": []}

    config = ScheduleConfig(
        required_hours=required_hours,
        max_daily_hours=_number(
            payload, "maxDailyHours", _setting(settings, "DEFAULT_MAX_DAILY_HOURS")
        ),
        time_limit_ms=_number(
            payload, "timeLimit", _setting(settings, "DEFAULT_TIME_LIMIT_MS"), float
        ),
        # Flags are on unless explicitly false
        **{attr: payload.get(key) is not False for key, attr in BLOCK_FLAGS.items()},
    )

    result = BranchAndBoundScheduler(vector, config, clock=clock).solve()

    logger.info(
        "Branch and bound finished: value %.2f, %d hours, %d nodes in %.0fms%s",
        result.value,
        result.selected_hours,
        result.nodes_explored,
        result.execution_time_ms,
        " (time limit reached)" if result.timed_out else "",
    )
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug("Schedule grid:\n%s", pretty_print(result.schedule, vector))

    if not result.solution_found:
        return {"timeSlots": []}

    return {"timeSlots": [slot.to_dict() for slot in schedule_to_time_slots(result.schedule)]}


# =============================================================================
# PREFERENCE VECTOR
# =============================================================================


def generate_preference_vector(availability=None, time_of_day=None) -> List[float]:
    """Tiered preference vector from a 0/1 availability vector (all ones if absent)"""
    vector = None
    if availability is not None:
        vector = parse_preference_vector(availability)
        if len(vector) != TOTAL_SLOTS:
            raise InvalidInputError(
                f"Availability vector length mismatch: {len(vector)} != {TOTAL_SLOTS}",
                field="availabilityVector",
            )

    vector = apply_time_of_day_preference(vector, time_of_day)

    if logger.isEnabledFor(logging.DEBUG):
        for day_index, day in enumerate(WEEKDAYS):
            row = vector[day_index * HOURS_PER_DAY:(day_index + 1) * HOURS_PER_DAY]
            logger.debug("%s: %s", day, " ".join(str(v) for v in row))

    return vector


# =============================================================================
# STUDY SESSIONS
# =============================================================================


def generate_study_sessions(
    preference_vector,
    max_hours_per_day: Optional[int] = None,
    courses: Optional[List[str]] = None,
    settings: Optional[Mapping] = None,
    rng: Optional[random.Random] = None,
    user_id: Optional[str] = None,
) -> Dict:
    """
    Population search over the days that have any positive preference.

    Returns {"sessions": [...], "availableDays": [...], "fitness": float|None}.
    When no schedule with exactly the required hours on available slots is
    found, sessions is empty and fitness is None.
    """
    vector = _preference_vector(preference_vector)
    max_hours_per_day = _number(
        {"maxHoursPerDay": max_hours_per_day},
        "maxHoursPerDay",
        _setting(settings, "DEFAULT_MAX_DAILY_HOURS"),
    )

    available_days = get_available_days(WEEKDAYS, vector)
    if not available_days:
        log_with_context(
            logger, logging.WARNING, "No available days in preference vector",
            user_id=user_id, action="generate_study_sessions",
        )
        return {"sessions": [], "availableDays": [], "fitness": None}

    day_indices = [WEEKDAYS.index(day) for day in available_days]
    day_vector = slice_days(vector, day_indices)
    required_hours = _setting(settings, "STUDY_SESSION_REQUIRED_HOURS")

    available = count_available(day_vector)
    if available < required_hours:
        log_with_context(
            logger, logging.WARNING,
            f"Not enough available slots ({available}) to satisfy required hours ({required_hours})",
            user_id=user_id, action="generate_study_sessions",
        )
        return {"sessions": [], "availableDays": available_days, "fitness": None}

    config = create_optimizer_config(
        len(available_days),
        required_hours,
        max_hours_per_day,
        population_size=_setting(settings, "POPULATION_SIZE"),
        generations=_setting(settings, "GENERATIONS"),
        delta=_setting(settings, "DELTA"),
    )
    weights = FitnessWeights(
        single_hour_block_penalty=_setting(settings, "SINGLE_HOUR_BLOCK_PENALTY"),
        long_block_penalty=_setting(settings, "LONG_BLOCK_PENALTY"),
        two_hour_block_bonus=_setting(settings, "TWO_HOUR_BLOCK_BONUS"),
    )

    evaluator = FitnessEvaluator(config, day_vector, weights)
    optimizer = PopulationOptimizer(config, evaluator, rng=rng)
    solution, fitness = optimizer.run()

    # Only exact-hour schedules on available slots count as a solution
    details = evaluator.evaluate(solution).penalty_details
    unavailable = find_unavailable_selections(solution, day_vector)
    if unavailable or details.hours_difference:
        log_with_context(
            logger, logging.WARNING,
            f"No valid schedule found: {len(unavailable)} unavailable slots, "
            f"{details.hours_difference} hours off the requirement",
            user_id=user_id, action="generate_study_sessions", fitness=fitness,
        )
        return {"sessions": [], "availableDays": available_days, "fitness": None}

    if logger.isEnabledFor(logging.DEBUG):
        for day, offsets in extract_study_slots(
            solution, available_days, config.hours_per_day
        ).items():
            logger.debug("%s: hours %s", day, ", ".join(str(o + START_HOUR) for o in offsets))

    sessions = format_study_sessions(available_days, solution, config.hours_per_day, courses)

    log_with_context(
        logger, logging.INFO,
        f"Generated {len(sessions)} study sessions across {len(available_days)} days",
        user_id=user_id, action="generate_study_sessions", fitness=fitness,
    )

    return {
        "sessions": [s.to_dict() for s in sessions],
        "availableDays": available_days,
        "fitness": fitness,
    }


# =============================================================================
# SPACED REPETITION
# =============================================================================


def schedule_review(
    user_id: str,
    course_id: Optional[str],
    lecture_id: str,
    score,
    study_count: Optional[int] = None,
    quiz_date=None,
    now: Clock = now_utc,
) -> Dict:
    """Compute and persist the next review; persistence failures become success False"""
    if not user_id:
        raise InvalidInputError("userId is required", field="userId")
    if not lecture_id:
        raise InvalidInputError("lectureId is required", field="lectureId")

    payload = {"score": score, "studyCount": study_count}
    score = _number(payload, "score", None, float)
    if score is None:
        raise InvalidInputError("score is required", field="score")
    study_count = _number(payload, "studyCount", None)
    if study_count is not None and study_count < 1:
        raise InvalidInputError("studyCount must be at least 1", field="studyCount")

    if quiz_date is not None:
        try:
            quiz_date = ensure_timezone_aware(quiz_date)
        except ValueError as e:
            raise InvalidInputError("Invalid quiz date", field="quizDate") from e

    try:
        review = save_scheduled_review(
            user_id,
            course_id,
            lecture_id,
            score,
            quiz_date=quiz_date,
            study_count=study_count,
            now=now,
        )
    except PersistenceError as e:
        log_with_context(
            logger, logging.ERROR, f"Review scheduling failed: {e}",
            user_id=user_id, action="schedule_review",
        )
        return {"success": False, "error": str(e)}

    return {"success": True, "review": review.to_dict(now())}


def half_life_breakdown(args: Mapping) -> Dict:
    """Step-by-step half-life values for the given query arguments"""
    study_count = _number(args, "studyCount", 1)
    if study_count < 1:
        raise InvalidInputError("studyCount must be at least 1", field="studyCount")

    breakdown = explain_half_life(
        score=_number(args, "score", 0, float),
        study_duration=_number(args, "studyDuration", 30, float),
        task_complexity=_number(args, "taskComplexity", 3, float),
        time_since_last_review=_number(args, "timeSinceLastReview", 0, float),
        previous_half_life=_number(args, "previousHalfLife", None, float),
        study_count=study_count,
    )
    return breakdown.to_dict()
