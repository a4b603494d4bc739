"""Routes for directory businesses."""

from flask import Blueprint, request, jsonify, current_app, g
from sqlalchemy import case

from bizdirectory import db
from bizdirectory.constants import validate_category
from bizdirectory.models import Business
from bizdirectory.utils.auth import token_required

businesses_bp = Blueprint('businesses', __name__)


@businesses_bp.route('', methods=['GET'])
def get_businesses():
    """List businesses, optionally by category, with live boosts first."""
    try:
        page = request.args.get('page', 1, type=int)
        per_page = request.args.get('per_page', 20, type=int)
        category = request.args.get('category')
        now = current_app.config['BOOST_CLOCK']()

        query = Business.query

        if category:
            normalized, error = validate_category(category)
            if error:
                return jsonify({'error': error}), 400
            query = query.filter(Business.category == normalized)

        # Order: live boosts first, then by newest
        boosted_first = case(
            (db.and_(Business.boost_active.is_(True), Business.boost_end_at > now), 0),
            else_=1
        )
        query = query.order_by(boosted_first, Business.created_at.desc(), Business.id.desc())

        paginated = query.paginate(page=page, per_page=per_page, error_out=False)

        return jsonify({
            'businesses': [b.to_dict(now) for b in paginated.items],
            'total': paginated.total,
            'page': page
        }), 200

    except Exception as e:
        return jsonify({'error': str(e)}), 500


@businesses_bp.route('/<int:business_id>', methods=['GET'])
def get_business(business_id):
    """Get a single business by ID."""
    try:
        business = db.session.get(Business, business_id)

        if not business:
            return jsonify({'error': 'Business not found'}), 404

        return jsonify(business.to_dict(current_app.config['BOOST_CLOCK']())), 200

    except Exception as e:
        return jsonify({'error': str(e)}), 500


@businesses_bp.route('', methods=['POST'])
@token_required
def create_business():
    """Create a business owned by the current user."""
    if g.current_user.role not in ('business', 'admin'):
        return jsonify({'error': 'Only business accounts can create businesses'}), 403

    try:
        data = request.get_json(silent=True) or {}

        # Validate required fields
        for field in ('name', 'category'):
            if not data.get(field):
                return jsonify({'error': f'Missing required field: {field}'}), 400

        category, error = validate_category(data['category'])
        if error:
            return jsonify({'error': error}), 400

        business = Business(
            name=data['name'],
            description=data.get('description'),
            category=category,
            owner_id=g.current_user.id
        )

        db.session.add(business)
        db.session.commit()

        return jsonify({
            'message': 'Business created successfully',
            'business': business.to_dict(current_app.config['BOOST_CLOCK']())
        }), 201

    except Exception as e:
        db.session.rollback()
        return jsonify({'error': str(e)}), 500
