"""Boost scheduler for featured business slots.

Each category has one featured slot. A business asking for a boost either
takes the slot immediately for BOOST_DURATION or, when the slot is held (or
other requests are already waiting), is queued with a window stacked on the
end of the category's queue. The periodic sweep expires finished windows and
promotes the next queued request once its window opens; a business can also
claim its own queued window itself once it has opened.

All mutations for a category run under ``category_lock`` and the write that
takes the slot is conditional, so two requests can never both activate.
Every function takes ``now`` explicitly; callers pass the app clock.
"""

import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import func, select, update
from sqlalchemy.orm import aliased

from bizdirectory import db
from bizdirectory.models import Business, BoostRequest
from bizdirectory.services.redis_client import category_lock

logger = logging.getLogger(__name__)

BOOST_DURATION = timedelta(hours=24)


class BoostError(Exception):
    """Expected boost outcome that is reported back to the caller."""

    status_code = 400

    def __init__(self, message):
        super().__init__(message)
        self.message = message


class NotFoundError(BoostError):
    status_code = 404


class InvalidStateError(BoostError):
    status_code = 400


def utcnow():
    """Current time as naive UTC, the format stored in the database."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _get_business(business_id):
    business = db.session.get(Business, business_id)
    if business is None:
        raise NotFoundError('Business not found')
    return business


def _occupant_query(category, now, exclude_id=None):
    """Businesses holding an unexpired boost in ``category``."""
    query = Business.query.filter(
        Business.boost_category == category,
        Business.boost_active.is_(True),
        Business.boost_end_at > now
    )
    if exclude_id is not None:
        query = query.filter(Business.id != exclude_id)
    return query


def _occupant_count(now):
    return Business.query.filter(
        Business.boost_active.is_(True),
        Business.boost_end_at > now
    ).count()


def _occupant_summary(occupant):
    if occupant is None:
        return None
    return {
        'business_id': occupant.id,
        'name': occupant.name,
        'boost_start_at': occupant.boost_start_at.isoformat(),
        'boost_end_at': occupant.boost_end_at.isoformat(),
    }


def _category_queue(category):
    return BoostRequest.query.filter(
        BoostRequest.category == category
    ).order_by(BoostRequest.scheduled_start, BoostRequest.id)


def _activate_if_free(business, category, start, end, now, respect_queue):
    """Take the category slot for ``business`` with a single conditional UPDATE.

    Returns False when another business holds an unexpired boost (or, with
    ``respect_queue``, when live requests are waiting in the category).
    """
    other = aliased(Business)
    occupied = select(other.id).where(
        other.boost_category == category,
        other.boost_active.is_(True),
        other.boost_end_at > now,
        other.id != business.id
    ).exists()

    conditions = [Business.id == business.id, ~occupied]
    if respect_queue:
        waiting = select(BoostRequest.id).where(
            BoostRequest.category == category,
            BoostRequest.scheduled_end > now
        ).exists()
        conditions.append(~waiting)

    result = db.session.execute(
        update(Business)
        .where(*conditions)
        .values(
            boost_active=True,
            boost_category=category,
            boost_start_at=start,
            boost_end_at=end
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        return False

    db.session.expire(business)
    return True


def _queue_tail(category, now):
    """Start of the next free window: end of the occupant or of the last live request."""
    occupant_end = db.session.query(func.max(Business.boost_end_at)).filter(
        Business.boost_category == category,
        Business.boost_active.is_(True),
        Business.boost_end_at > now
    ).scalar()
    queued_end = db.session.query(func.max(BoostRequest.scheduled_end)).filter(
        BoostRequest.category == category,
        BoostRequest.scheduled_end > now
    ).scalar()

    candidates = [t for t in (occupant_end, queued_end) if t is not None]
    return max(candidates) if candidates else now


def _restack(category, removed_start, now):
    """Close the gap left by removed requests so later windows stay contiguous.

    Windows only ever move earlier, and never before ``now`` or before the
    end of the current occupant.
    """
    occupant_end = db.session.query(func.max(Business.boost_end_at)).filter(
        Business.boost_category == category,
        Business.boost_active.is_(True),
        Business.boost_end_at > now
    ).scalar()
    floor = max(t for t in (now, occupant_end) if t is not None)

    cursor = removed_start
    for entry in _category_queue(category).filter(BoostRequest.scheduled_start >= removed_start).all():
        start = max(cursor, floor)
        if start < entry.scheduled_start:
            entry.scheduled_start = start
            entry.scheduled_end = start + BOOST_DURATION
        cursor = entry.scheduled_end


def _position_of(entry, now):
    """Live requests ahead of ``entry`` in its category queue."""
    return BoostRequest.query.filter(
        BoostRequest.category == entry.category,
        BoostRequest.scheduled_end > now,
        db.or_(
            BoostRequest.scheduled_start < entry.scheduled_start,
            db.and_(
                BoostRequest.scheduled_start == entry.scheduled_start,
                BoostRequest.id < entry.id
            )
        )
    ).count()


# ============================================================================
# COMMANDS
# ============================================================================

def request_boost(business_id, now, requester_id=None, category=None):
    """Activate a boost for ``business_id`` now, or queue it behind the current one.

    Returns the activation result ``{'active': True, ...}`` or the queued
    result ``{'active': False, 'queued': True, ...}`` with the window the
    request will occupy once promoted.
    """
    business = _get_business(business_id)

    if category is None:
        category = business.category
    elif category != business.category:
        raise InvalidStateError('Boost category must match the business category')

    with category_lock(category):
        db.session.refresh(business)

        if business.is_boost_active(now):
            raise InvalidStateError('Business is already boosted')

        start = now
        end = now + BOOST_DURATION
        if _activate_if_free(business, category, start, end, now, respect_queue=True):
            db.session.commit()
            logger.info(f"Business {business_id} boosted in '{category}' until {end.isoformat()}")
            return {
                'active': True,
                'queued': False,
                'boost_start_at': start,
                'boost_end_at': end
            }

        start = _queue_tail(category, now)
        end = start + BOOST_DURATION
        entry = BoostRequest(
            business_id=business.id,
            requester_id=requester_id,
            category=category,
            scheduled_start=start,
            scheduled_end=end,
            created_at=now
        )
        db.session.add(entry)
        db.session.flush()
        position = _position_of(entry, now)
        db.session.commit()

        logger.info(
            f"Business {business_id} queued in '{category}' at position {position} "
            f"for {start.isoformat()} - {end.isoformat()}"
        )
        return {
            'active': False,
            'queued': True,
            'boost_start_at': start,
            'boost_end_at': end,
            'queue_position': position
        }


def claim_queued_boost(business_id, now):
    """Activate the head of the business's own queue once its window has opened."""
    business = _get_business(business_id)

    with category_lock(business.category):
        db.session.refresh(business)

        if not business.boost_queue:
            raise InvalidStateError('No boost queued.')

        head = business.boost_queue[0]
        if now < head.scheduled_start:
            raise InvalidStateError('Boost period has not started yet.')

        if head.scheduled_end <= now:
            ended = head.scheduled_end
            db.session.delete(head)
            db.session.commit()
            logger.info(f"Dropped lapsed queued boost for business {business_id} (window ended {ended.isoformat()})")
            raise InvalidStateError('Boost period has already ended.')

        start, end, category = head.scheduled_start, head.scheduled_end, head.category
        if not _activate_if_free(business, category, start, end, now, respect_queue=False):
            raise InvalidStateError('Another business is currently boosted in this category.')

        db.session.delete(head)
        db.session.commit()

    logger.info(f"Business {business_id} claimed its queued boost in '{category}'")
    return {
        'active': True,
        'queued': False,
        'boost_start_at': start,
        'boost_end_at': end
    }


def clear_boost(business_id, now):
    """Administrative reset: drop the active window and every queued request."""
    business = _get_business(business_id)

    with category_lock(business.category):
        db.session.refresh(business)

        removed = list(business.boost_queue)
        anchor = min((entry.scheduled_start for entry in removed), default=None)
        if business.is_boost_active(now):
            # The freed slot pulls the waiting requests forward from its old start
            anchor = min(t for t in (anchor, business.boost_start_at) if t is not None)

        business.reset_boost()
        business.boost_queue.clear()
        db.session.flush()

        if anchor is not None:
            _restack(business.category, anchor, now)
        db.session.commit()

    logger.info(f"Cleared boost state for business {business_id} ({len(removed)} queued request(s) removed)")
    return {'business_id': business_id, 'removed_requests': len(removed)}


def cancel_queued_boost(business_id, now):
    """Remove the business's pending requests from its category queue."""
    business = _get_business(business_id)

    with category_lock(business.category):
        db.session.refresh(business)

        removed = list(business.boost_queue)
        if not removed:
            raise InvalidStateError('No boost queued.')

        anchor = min(entry.scheduled_start for entry in removed)
        business.boost_queue.clear()
        db.session.flush()

        _restack(business.category, anchor, now)
        db.session.commit()

    logger.info(f"Removed {len(removed)} queued boost request(s) for business {business_id}")
    return {'business_id': business_id, 'removed_requests': len(removed)}


# ============================================================================
# SWEEP
# ============================================================================

def _action(action, business_id, message):
    logger.info(message)
    return {'action': action, 'business_id': business_id, 'message': message}


def _categories_with_boost_state():
    active = db.session.query(Business.boost_category).filter(
        Business.boost_active.is_(True),
        Business.boost_category.isnot(None)
    ).distinct()
    queued = db.session.query(BoostRequest.category).distinct()
    return sorted({c for (c,) in active} | {c for (c,) in queued})


def _sweep_category(category, now):
    actions = []

    expired = Business.query.filter(
        Business.boost_category == category,
        Business.boost_active.is_(True),
        Business.boost_end_at <= now
    ).all()
    for business in expired:
        ended = business.boost_end_at
        business.reset_boost()
        actions.append(_action(
            'expired', business.id,
            f"Boost for '{business.name}' in {category} expired at {ended.isoformat()}"
        ))
    db.session.flush()

    while _occupant_query(category, now).first() is None:
        head = _category_queue(category).first()
        if head is None:
            break

        if head.scheduled_end <= now:
            business_id = head.business_id
            ended = head.scheduled_end
            db.session.delete(head)
            db.session.flush()
            actions.append(_action(
                'lapsed', business_id,
                f"Queued boost for business {business_id} in {category} lapsed (window ended {ended.isoformat()})"
            ))
            continue

        if head.scheduled_start > now:
            break

        business = head.business
        start, end = head.scheduled_start, head.scheduled_end
        if not _activate_if_free(business, category, start, end, now, respect_queue=False):
            break
        db.session.delete(head)
        db.session.flush()
        actions.append(_action(
            'activated', business.id,
            f"Boost for '{business.name}' in {category} activated until {end.isoformat()}"
        ))
        break

    return actions


def sweep_boost_queues(now):
    """Expire finished boosts and promote queued requests, category by category.

    A failure in one category is rolled back and reported without stopping
    the others. Running it twice with the same ``now`` changes nothing the
    second time.
    """
    categories = _categories_with_boost_state()
    per_category = []

    for category in categories:
        try:
            with category_lock(category):
                actions = _sweep_category(category, now)
                db.session.commit()
        except Exception as e:
            db.session.rollback()
            logger.error(f"Boost sweep failed for category {category}: {e}")
            per_category.append({'category': category, 'actions': [], 'error': str(e)})
            continue

        per_category.append({'category': category, 'actions': actions})

    return {
        'processed_categories': len(categories),
        'per_category_actions': per_category
    }


# ============================================================================
# QUERIES
# ============================================================================

def get_queue_position(business_id, now):
    """0-based position of the business's next live request in its category queue, or None."""
    business = _get_business(business_id)
    live = [entry for entry in business.boost_queue if entry.scheduled_end > now]
    if not live:
        return None
    return _position_of(live[0], now)


def get_boost_status(business_id, now):
    business = _get_business(business_id)
    active = business.is_boost_active(now)

    return {
        'business_id': business.id,
        'active': active,
        'category': business.boost_category or business.category,
        'boost_start_at': business.boost_start_at,
        'boost_end_at': business.boost_end_at,
        'time_remaining_seconds': int((business.boost_end_at - now).total_seconds()) if active else None,
        'queue': [entry.to_dict() for entry in business.boost_queue],
        'queue_position': get_queue_position(business_id, now)
    }


def list_active_boosts(now):
    """Every unexpired boost, latest-expiring first."""
    boosted = Business.query.filter(
        Business.boost_active.is_(True),
        Business.boost_end_at > now
    ).order_by(Business.boost_end_at.desc()).all()

    return [
        {
            'business_id': b.id,
            'name': b.name,
            'category': b.boost_category,
            'boost_start_at': b.boost_start_at,
            'boost_end_at': b.boost_end_at,
            'time_remaining_seconds': int((b.boost_end_at - now).total_seconds())
        }
        for b in boosted
    ]


def get_boost_stats(now):
    categories = _categories_with_boost_state()
    per_category = []

    for category in categories:
        occupant = _occupant_query(category, now).first()
        pending = BoostRequest.query.filter(
            BoostRequest.category == category,
            BoostRequest.scheduled_end > now
        ).count()
        per_category.append({
            'category': category,
            'currently_active': _occupant_summary(occupant),
            'pending': pending
        })

    return {
        'total_categories': len(categories),
        'categories_with_active_boosts': sum(1 for c in per_category if c['currently_active']),
        'total_active': _occupant_count(now),
        'total_pending': sum(c['pending'] for c in per_category),
        'categories': per_category
    }

def get_category_queue(category, now):
    """Current occupant and ordered live queue of one category (admin view)."""
    occupant = _occupant_query(category, now).first()
    entries = _category_queue(category).filter(BoostRequest.scheduled_end > now).all()

    queue = []
    for position, entry in enumerate(entries):
        item = entry.to_dict()
        item['business_name'] = entry.business.name
        item['position'] = position
        queue.append(item)

    return {
        'category': category,
        'currently_active': _occupant_summary(occupant),
        'queue': queue,
        'total_pending': len(queue)
    }


def list_category_queues(now):
    """Queue view of every category with boost state, ordered by category."""
    return [get_category_queue(category, now) for category in _categories_with_boost_state()]
