import random

from flask import Blueprint, current_app, jsonify, request

from errors import InvalidInputError, PersistenceError
from models import (
    delete_scheduled_reviews,
    get_due_reviews,
    get_scheduled_reviews,
    get_study_preference,
)
from services.entrypoints import (
    generate_preference_vector,
    generate_study_sessions,
    half_life_breakdown,
    run_branch_and_bound,
    schedule_review,
)
from utils.datetime_utils import get_timezone, now_utc
from utils.logging_utils import get_logger

bp = Blueprint('bp', __name__)

logger = get_logger(__name__)


def _invalid(e: InvalidInputError):
    logger.warning('Rejected request: %s', e.message)
    return jsonify(e.to_dict()), 400


def _failed(e: Exception):
    logger.exception('Request failed')
    return jsonify({'error': str(e) or 'Internal server error'}), 500


def _rng():
    seed = current_app.config.get('RANDOM_SEED')
    return random.Random(seed) if seed is not None else None


# ============================================================================
# SCHEDULING ROUTES
# ============================================================================

@bp.route('/api/schedule/branch-and-bound', methods=['POST'])
def branch_and_bound_schedule():
    """Exact weekly schedule for a preference vector"""
    try:
        payload = request.get_json(silent=True) or {}
        return jsonify(run_branch_and_bound(payload, settings=current_app.config))
    except InvalidInputError as e:
        return _invalid(e)
    except Exception as e:
        return _failed(e)


@bp.route('/api/preferences/vector', methods=['POST'])
def preference_vector():
    """Availability vector weighted by the user's preferred time of day"""
    try:
        payload = request.get_json(silent=True) or {}

        time_of_day = payload.get('timeOfDay')
        if time_of_day is None:
            preference = get_study_preference(payload.get('userId'))
            time_of_day = preference.preferred_time_of_day if preference else None

        vector = generate_preference_vector(payload.get('availabilityVector'), time_of_day)
        return jsonify({'preferenceVector': vector})
    except InvalidInputError as e:
        return _invalid(e)
    except Exception as e:
        return _failed(e)


@bp.route('/api/study-sessions', methods=['POST'])
def study_sessions():
    """Study sessions from the population optimizer, courses assigned round-robin"""
    try:
        payload = request.get_json(silent=True) or {}
        user_id = payload.get('userId')

        preference = get_study_preference(user_id)
        max_hours = payload.get('maxHoursPerDay')
        if max_hours is None and preference is not None:
            max_hours = preference.max_hours_per_day
        courses = payload.get('courses')
        if courses is None:
            courses = preference.course_list if preference else []

        result = generate_study_sessions(
            payload.get('preferenceVector'),
            max_hours_per_day=max_hours,
            courses=[c for c in courses if isinstance(c, str)],
            settings=current_app.config,
            rng=_rng(),
            user_id=user_id,
        )
        return jsonify(result)
    except InvalidInputError as e:
        return _invalid(e)
    except Exception as e:
        return _failed(e)


# ============================================================================
# REVIEW ROUTES
# ============================================================================

@bp.route('/api/reviews', methods=['POST'])
def create_review():
    """Record a quiz score and schedule the next review"""
    try:
        payload = request.get_json(silent=True) or {}
        result = schedule_review(
            payload.get('userId'),
            payload.get('courseId'),
            payload.get('lectureId'),
            payload.get('score'),
            study_count=payload.get('studyCount'),
            quiz_date=payload.get('quizDate'),
        )
        return jsonify(result), 200 if result['success'] else 500
    except InvalidInputError as e:
        return _invalid(e)
    except Exception as e:
        return _failed(e)


@bp.route('/api/reviews/half-life', methods=['GET'])
def half_life_debug():
    """Intermediate values of the half-life calculation"""
    try:
        return jsonify(half_life_breakdown(request.args))
    except InvalidInputError as e:
        return _invalid(e)
    except Exception as e:
        return _failed(e)


@bp.route('/api/reviews/<user_id>', methods=['GET'])
def list_reviews(user_id):
    try:
        now = now_utc()
        tz = get_timezone(current_app.config.get('TIMEZONE'))
        if request.args.get('due') in ('1', 'true'):
            reviews = get_due_reviews(user_id, now=lambda: now)
        else:
            reviews = get_scheduled_reviews(user_id)
        return jsonify({'reviews': [r.to_dict(now, tz) for r in reviews]})
    except Exception as e:
        return _failed(e)


@bp.route('/api/reviews/<user_id>', methods=['DELETE'])
def remove_reviews(user_id):
    try:
        deleted = delete_scheduled_reviews(
            user_id,
            course_id=request.args.get('courseId'),
            lecture_id=request.args.get('lectureId'),
        )
        return jsonify({'success': True, 'deleted': deleted})
    except PersistenceError as e:
        return jsonify({'success': False, 'error': str(e)}), 500
    except Exception as e:
        return _failed(e)


@bp.route('/health', methods=['GET'])
def health():
    return jsonify({'status': 'ok'})
