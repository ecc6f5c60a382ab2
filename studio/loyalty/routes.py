from flask import Blueprint, jsonify
from studio import db
from studio.auth.decorators import admin_required, login_required
from studio.customers.models import Customer
from studio.loyalty.engine import build_engine
from studio.loyalty.models import PointHistory
from studio.utils.http import result_response, json_body, int_arg

loyalty = Blueprint('loyalty', __name__)


@loyalty.route('/customers/<int:customer_id>/points', methods=['POST'])
@admin_required
def adjust(customer_id):
    """Manual adjustment or bonus: {"delta": 50, "event_type": "bonus", "note": "..."}"""
    data = json_body()
    try:
        delta = int(data.get('delta'))
    except (TypeError, ValueError):
        return jsonify({'success': False, 'message': 'delta must be a whole number.',
                        'error_kind': 'validation'}), 400
    result = build_engine().adjust_points(
        customer_id, delta,
        event_type=data.get('event_type') or 'adjustment',
        note=data.get('note'),
    )
    return result_response(result)


@loyalty.route('/customers/<int:customer_id>/history')
@login_required
def history(customer_id):
    if db.session.get(Customer, customer_id) is None:
        return jsonify({'success': False, 'message': f'Customer {customer_id} not found.',
                        'error_kind': 'not_found'}), 404
    rows = (
        PointHistory.query
        .filter_by(customer_id=customer_id)
        .order_by(PointHistory.id.desc())
        .limit(int_arg('limit', 100))
        .all()
    )
    return jsonify([{
        'points':     r.points,
        'event_type': r.event_type.value,
        'related_id': r.related_id,
        'note':       r.note,
        'created_at': r.created_at.isoformat(),
    } for r in rows])
