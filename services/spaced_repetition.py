"""
Spaced Repetition (Half-Life Regression)
========================================

The half-life is the number of days until recall probability of a lecture
decays to 50%. It is computed from the latest quiz score and the study
history through a fixed sequence of adjustments:

1. base = base_constant * (score/100 * study_duration) / complexity
2. quiz performance: base *= 0.2 + (score/100)^2 * quiz_score_factor * 2.5
3. spacing effect: base *= 1 + time_since_review_factor * ln(1 + days)
4. blend with the previous half-life, weight 1/(study_count + 1) on the new value
5. repetition effect: base *= 1 + sqrt(study_count - 1) * study_count_factor
6. floor at min_half_life

Everything here is pure; persistence lives in models.py.
"""

import math
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from utils.datetime_utils import MS_PER_DAY, Clock, ensure_timezone_aware, from_millis, now_utc, to_millis

DEFAULT_COMPLEXITY = 3
DEFAULT_DURATION_MINUTES = 30


@dataclass(frozen=True)
class HalfLifeParams:
    base_constant: float = 0.5
    quiz_score_factor: float = 0.7
    time_since_review_factor: float = 0.3
    study_count_factor: float = 0.4
    min_half_life: float = 1.0


DEFAULT_PARAMS = HalfLifeParams()


@dataclass(frozen=True)
class LectureMetadata:
    """Numeric lecture attributes the half-life model consumes"""

    difficulty: int = DEFAULT_COMPLEXITY
    duration: int = DEFAULT_DURATION_MINUTES  # lecture minutes
    title: str = ""
    description: str = ""
    raw_difficulty: str = "Medium"


@dataclass(frozen=True)
class HalfLifeBreakdown:
    """Every intermediate value of one half-life calculation"""

    normalized_score: float
    task_complexity: float
    base_half_life: float
    performance_modifier: float
    after_performance: float
    spacing_effect: float
    after_spacing: float
    weight_for_previous: Optional[float]
    after_previous: float
    repetition_factor: float
    after_study_count: float
    half_life: float

    def to_dict(self):
        return {
            "normalizedScore": self.normalized_score,
            "taskComplexity": self.task_complexity,
            "baseHalfLife": self.base_half_life,
            "performanceModifier": self.performance_modifier,
            "afterPerformance": self.after_performance,
            "spacingEffect": self.spacing_effect,
            "afterSpacing": self.after_spacing,
            "weightForPrevious": self.weight_for_previous,
            "afterPrevious": self.after_previous,
            "repetitionFactor": self.repetition_factor,
            "afterStudyCount": self.after_study_count,
            "halfLife": self.half_life,
            "nextReviewIn": {"days": self.half_life, "hours": self.half_life * 24},
        }


# =============================================================================
# HALF-LIFE
# =============================================================================


def explain_half_life(
    score: float,
    study_duration: float,
    task_complexity: float,
    time_since_last_review: float = 0,
    previous_half_life: Optional[float] = None,
    study_count: int = 1,
    params: HalfLifeParams = DEFAULT_PARAMS,
) -> HalfLifeBreakdown:
    """Run the half-life model and keep every step; study_count must be at least 1"""
    if study_count < 1:
        raise ValueError(f"study_count must be at least 1, got {study_count}")

    normalized_score = min(100.0, max(0.0, float(score))) / 100
    complexity = min(5.0, max(1.0, float(task_complexity)))

    base = params.base_constant * (normalized_score * study_duration) / complexity

    performance_modifier = 0.2 + normalized_score ** 2 * params.quiz_score_factor * 2.5
    after_performance = base * performance_modifier

    spacing_effect = 1.0
    if time_since_last_review and time_since_last_review > 0:
        spacing_effect = 1 + params.time_since_review_factor * math.log1p(time_since_last_review)
    after_spacing = after_performance * spacing_effect

    weight = None
    after_previous = after_spacing
    if previous_half_life and previous_half_life > 0:
        weight = 1 / (study_count + 1)
        after_previous = weight * after_spacing + (1 - weight) * previous_half_life

    repetition_factor = 1.0
    if study_count > 1:
        repetition_factor = 1 + math.sqrt(study_count - 1) * params.study_count_factor
    after_study_count = after_previous * repetition_factor

    return HalfLifeBreakdown(
        normalized_score=normalized_score,
        task_complexity=complexity,
        base_half_life=base,
        performance_modifier=performance_modifier,
        after_performance=after_performance,
        spacing_effect=spacing_effect,
        after_spacing=after_spacing,
        weight_for_previous=weight,
        after_previous=after_previous,
        repetition_factor=repetition_factor,
        after_study_count=after_study_count,
        half_life=max(params.min_half_life, after_study_count),
    )


def calculate_half_life(
    score: float,
    study_duration: float,
    task_complexity: float,
    time_since_last_review: float = 0,
    previous_half_life: Optional[float] = None,
    study_count: int = 1,
    params: HalfLifeParams = DEFAULT_PARAMS,
) -> float:
    """Half-life in days, never below params.min_half_life"""
    return explain_half_life(
        score,
        study_duration,
        task_complexity,
        time_since_last_review,
        previous_half_life,
        study_count,
        params,
    ).half_life


def schedule_next_review(
    half_life: float,
    quiz_date=None,
    now: Clock = now_utc,
    params: HalfLifeParams = DEFAULT_PARAMS,
) -> datetime:
    """Quiz completion time (or now) plus half_life days"""
    base = ensure_timezone_aware(quiz_date) if quiz_date is not None else now()
    valid_half_life = max(params.min_half_life, half_life)
    return from_millis(to_millis(base) + valid_half_life * MS_PER_DAY)


# =============================================================================
# LECTURE METADATA
# =============================================================================

_DIFFICULTY_KEYWORDS = [
    (1, ("very easy", "beginner")),
    (5, ("very hard", "expert")),
    (2, ("easy", "simple")),
    (3, ("medium", "moderate", "intermediate")),
    (4, ("hard", "difficult", "advanced")),
]

_COMPLEXITY_KEYWORDS = [
    (5, ("quantum", "algorithm", "neural network", "differential equation", "genome", "theorem")),
    (4, ("advanced", "complex", "framework", "architecture", "implementation", "analysis")),
    (3, ("concept", "model", "system", "function", "process", "structure")),
    (2, ("principle", "method", "basic", "technique", "application", "simple")),
    (1, ("introduction", "overview", "fundamentals", "beginner", "review")),
]

_DURATION_KEYWORDS = [
    (20, ("introduction", "overview")),
    (45, ("advanced", "complex")),
    (60, ("workshop", "practical")),
]


def convert_difficulty_to_numeric(difficulty: Optional[str]) -> int:
    """Map a stored difficulty ("4", "Hard", "very easy") onto 1-5"""
    if not difficulty:
        return DEFAULT_COMPLEXITY

    text = str(difficulty).strip()
    if text.isdigit():
        return min(5, max(1, int(text)))

    lowered = text.lower()
    for level, keywords in _DIFFICULTY_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return level

    return DEFAULT_COMPLEXITY


def parse_duration_minutes(duration: Optional[str]) -> int:
    """First integer in a duration string ("60 minutes" -> 60)"""
    if not duration:
        return DEFAULT_DURATION_MINUTES
    match = re.search(r"(\d+)", str(duration))
    if not match:
        return DEFAULT_DURATION_MINUTES
    return int(match.group(1))


def estimate_task_complexity(title: Optional[str] = None, description: Optional[str] = None) -> int:
    """Keyword guess at complexity for lectures with no stored difficulty"""
    content = f"{title or ''} {description or ''}".lower()
    for level, keywords in _COMPLEXITY_KEYWORDS:
        if any(keyword in content for keyword in keywords):
            return level

    return DEFAULT_COMPLEXITY


def estimate_study_duration(title: Optional[str] = None, description: Optional[str] = None) -> int:
    content = f"{title or ''} {description or ''}".lower()
    for minutes, keywords in _DURATION_KEYWORDS:
        if any(keyword in content for keyword in keywords):
            return minutes

    return DEFAULT_DURATION_MINUTES
