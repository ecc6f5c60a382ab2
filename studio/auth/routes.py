from flask import Blueprint, request, session, jsonify, current_app
from studio import db
from studio.auth.decorators import login_required, admin_required
from studio.auth.models import User, RoleEnum

auth = Blueprint('auth', __name__)


@auth.route('/login', methods=['POST'])
def login():
    """Validate credentials and populate the session."""
    data = request.get_json(silent=True) or request.form
    username = (data.get('username') or '').strip()
    password = data.get('password') or ''

    if not username or not password:
        return jsonify({'success': False, 'message': 'Username and password are required.'}), 400

    user = User.query.filter_by(username=username).first()
    if user is None or not user.check_password(password):
        # Deliberately vague: never reveal which field was wrong
        current_app.logger.warning(f"Failed login attempt for username: {username}")
        return jsonify({'success': False, 'message': 'Invalid username or password.'}), 401

    session.clear()
    session['user_id'] = user.id
    session['role']    = user.role.value  # 'admin' or 'operator'
    session.permanent  = True             # respect PERMANENT_SESSION_LIFETIME

    current_app.logger.info(f"User {user.username} logged in successfully.")
    return jsonify({
        'success': True,
        'message': f'Welcome back, {user.name}!',
        'user': {'id': user.id, 'name': user.name, 'role': user.role.value},
    })


@auth.route('/logout', methods=['POST'])
@login_required
def logout():
    session.clear()
    return jsonify({'success': True, 'message': 'You have been logged out.'})


@auth.route('/operators', methods=['POST'])
@admin_required
def register_operator():
    """Admin-only: create a new back-office account."""
    data = request.get_json(silent=True) or {}
    name     = (data.get('name') or '').strip()
    username = (data.get('username') or '').strip()
    password = data.get('password') or ''
    role     = data.get('role') or RoleEnum.operator.value

    errors = {}
    if not name:
        errors['name'] = 'Name is required.'
    if not username:
        errors['username'] = 'Username is required.'
    elif User.query.filter_by(username=username).first():
        errors['username'] = f'User "{username}" already exists.'
    if len(password) < 3:
        errors['password'] = 'Password must be at least 3 characters.'
    if role not in [r.value for r in RoleEnum]:
        errors['role'] = 'Role must be admin or operator.'
    if errors:
        return jsonify({'success': False, 'message': 'Invalid operator data.', 'errors': errors}), 400

    user = User(name=name, username=username, role=RoleEnum(role))
    user.set_password(password)
    db.session.add(user)
    db.session.commit()

    current_app.logger.info(f"Operator {username} ({role}) registered by user {session.get('user_id')}")
    return jsonify({'success': True, 'message': f'User "{username}" created.', 'user_id': user.id}), 201
