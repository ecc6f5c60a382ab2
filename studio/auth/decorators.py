"""
studio/auth/decorators.py
-------------------------
Reusable route-protection decorators for the JSON API.
Usage:
    from studio.auth.decorators import login_required, admin_required

    @orders.route('/<int:order_id>/status', methods=['POST'])
    @login_required
    def change_status(order_id):
        ...

    @auth.route('/operators', methods=['POST'])
    @admin_required
    def register_operator():
        ...
"""
from functools import wraps
from flask import session, jsonify, abort


def _unauthenticated():
    return jsonify({'success': False, 'message': 'Please log in to access this resource.'}), 401


def login_required(f):
    """Reject with 401 unless 'user_id' is in the Flask session."""
    @wraps(f)
    def decorated(*args, **kwargs):
        if 'user_id' not in session:
            return _unauthenticated()
        return f(*args, **kwargs)
    return decorated


def admin_required(f):
    """
    Allow access only to users with role == 'admin'.
    Unauthenticated callers get 401; authenticated non-admins get 403.
    """
    @wraps(f)
    def decorated(*args, **kwargs):
        if 'user_id' not in session:
            return _unauthenticated()
        if session.get('role') != 'admin':
            abort(403)
        return f(*args, **kwargs)
    return decorated


def current_user_id():
    """Operator id for history rows, or None outside a logged-in request."""
    return session.get('user_id')
