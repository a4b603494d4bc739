"""Routes for business boosts (featured slot per category)."""

import logging
from datetime import datetime

from flask import Blueprint, request, jsonify, current_app, g

from bizdirectory import db
from bizdirectory.constants import validate_category
from bizdirectory.models import Business
from bizdirectory.services import boosts
from bizdirectory.services.boosts import BoostError
from bizdirectory.services.redis_client import CategoryLockTimeout
from bizdirectory.utils.auth import (
    token_required,
    admin_required,
    cron_or_admin_required,
    can_manage_business
)

logger = logging.getLogger(__name__)

boosts_bp = Blueprint('boosts', __name__)


def _now():
    return current_app.config['BOOST_CLOCK']()


def _serialize(value):
    """Render datetimes as ISO strings throughout a result payload."""
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: _serialize(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_serialize(v) for v in value]
    return value


def _error_response(e):
    db.session.rollback()
    if isinstance(e, BoostError):
        return jsonify({'error': e.message}), e.status_code
    if isinstance(e, CategoryLockTimeout):
        return jsonify({'error': str(e)}), 503
    logger.error(f"Boost request failed: {e}")
    return jsonify({'error': str(e)}), 500


def _managed_business(business_id):
    """Load a business the current user may manage, or return an error response."""
    business = db.session.get(Business, business_id)
    if not business:
        return None, (jsonify({'error': 'Business not found'}), 404)
    if not can_manage_business(g.current_user, business):
        return None, (jsonify({'error': 'Unauthorized'}), 403)
    return business, None


def _business_id_from_body():
    data = request.get_json(silent=True) or {}
    business_id = data.get('business_id')
    if not isinstance(business_id, int) or isinstance(business_id, bool):
        return None
    return business_id


@boosts_bp.route('', methods=['POST'])
@token_required
def request_boost():
    """Boost a business now, or queue it behind the current boost in its category."""
    business_id = _business_id_from_body()
    if business_id is None:
        return jsonify({'error': 'Missing required field: business_id'}), 400

    try:
        business, error = _managed_business(business_id)
        if error:
            return error

        result = boosts.request_boost(business.id, _now(), requester_id=g.current_user.id)

        if result['active']:
            message = 'Business is now boosted for 24 hours.'
        else:
            message = ('Another business is already boosted in this category. '
                       'Your boost will start when the slot frees up.')

        return jsonify({'message': message, **_serialize(result)}), 200

    except Exception as e:
        return _error_response(e)


@boosts_bp.route('/claim', methods=['POST'])
@token_required
def claim_boost():
    """Activate the business's queued boost once its window has opened."""
    business_id = _business_id_from_body()
    if business_id is None:
        return jsonify({'error': 'Missing required field: business_id'}), 400

    try:
        business, error = _managed_business(business_id)
        if error:
            return error

        result = boosts.claim_queued_boost(business.id, _now())

        return jsonify({'message': 'Business boost is now active.', **_serialize(result)}), 200

    except Exception as e:
        return _error_response(e)


@boosts_bp.route('/active', methods=['GET'])
def get_active_boosts():
    """Get all currently boosted businesses (latest-expiring first)."""
    try:
        active = boosts.list_active_boosts(_now())

        return jsonify({
            'boosts': _serialize(active),
            'total': len(active)
        }), 200

    except Exception as e:
        return _error_response(e)


@boosts_bp.route('/stats', methods=['GET'])
@admin_required
def get_boost_stats():
    """Get boost queue statistics across categories."""
    try:
        return jsonify(boosts.get_boost_stats(_now())), 200
    except Exception as e:
        return _error_response(e)


@boosts_bp.route('/queues', methods=['GET'])
@admin_required
def get_all_queues():
    """Get the occupant and live queue of every category with boost state."""
    try:
        queues = boosts.list_category_queues(_now())
        return jsonify({'queues': queues, 'total': len(queues)}), 200
    except Exception as e:
        return _error_response(e)


@boosts_bp.route('/category/<category>', methods=['GET'])
@admin_required
def get_category_queue(category):
    """Get the occupant and ordered live queue of one category."""
    normalized, error = validate_category(category)
    if error:
        return jsonify({'error': error}), 400

    try:
        return jsonify(boosts.get_category_queue(normalized, _now())), 200
    except Exception as e:
        return _error_response(e)


@boosts_bp.route('/sweep', methods=['POST'])
@cron_or_admin_required
def sweep():
    """Run one boost queue sweep (called by the external scheduler)."""
    try:
        result = boosts.sweep_boost_queues(_now())
        return jsonify(result), 200
    except Exception as e:
        return _error_response(e)


@boosts_bp.route('/<int:business_id>', methods=['GET'])
def get_boost_status(business_id):
    """Get the boost state and queue of one business."""
    try:
        status = boosts.get_boost_status(business_id, _now())
        return jsonify(_serialize(status)), 200
    except Exception as e:
        return _error_response(e)


@boosts_bp.route('/<int:business_id>/position', methods=['GET'])
def get_queue_position(business_id):
    """Get the business's position in its category queue."""
    try:
        position = boosts.get_queue_position(business_id, _now())
        return jsonify({
            'business_id': business_id,
            'queued': position is not None,
            'position': position
        }), 200
    except Exception as e:
        return _error_response(e)


@boosts_bp.route('/<int:business_id>', methods=['DELETE'])
@token_required
def clear_boost(business_id):
    """Reset all boost state of a business, including its queue."""
    try:
        business, error = _managed_business(business_id)
        if error:
            return error

        result = boosts.clear_boost(business.id, _now())

        return jsonify({'message': 'All previous boosts deleted for this business.', **result}), 200

    except Exception as e:
        return _error_response(e)


@boosts_bp.route('/<int:business_id>/queue', methods=['DELETE'])
@token_required
def cancel_queued_boost(business_id):
    """Remove the business from its category boost queue."""
    try:
        business, error = _managed_business(business_id)
        if error:
            return error

        result = boosts.cancel_queued_boost(business.id, _now())

        return jsonify({'message': 'Business removed from boost queue successfully', **result}), 200

    except Exception as e:
        return _error_response(e)
