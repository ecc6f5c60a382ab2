from decimal import Decimal

from flask import Blueprint, request, jsonify
from studio.auth.decorators import admin_required, login_required
from studio.dashboard.reports import build_dashboard, resolve_date_range
from studio.utils.http import int_arg

dashboard = Blueprint('dashboard', __name__)


def _range():
    return resolve_date_range(
        request.args.get('range_type', 'this_month'),
        request.args.get('start_date'),
        request.args.get('end_date'),
    )


@dashboard.route('/')
@admin_required
def index():
    rng = _range()
    reports = build_dashboard()
    limit = int_arg('limit', 10)
    return jsonify({
        'range': {
            'type':     rng.range_type,
            'start':    rng.start.isoformat(),
            'end':      rng.end.isoformat(),
            'warnings': rng.warnings,
        },
        'financial':     _stringify(reports.financial_overview(rng.start, rng.end)),
        'orders':        _stringify(reports.order_stats(rng.start, rng.end)),
        'kpis':          _stringify(reports.kpis(rng.start, rng.end)),
        'top_products':  [_stringify(r) for r in reports.top_products(rng.start, rng.end, limit)],
        'top_customers': [_stringify(r) for r in reports.top_customers(rng.start, rng.end, limit)],
    })


@dashboard.route('/open-orders')
@login_required
def open_orders():
    rng = _range()
    return jsonify(build_dashboard().non_completed_orders(rng.start, rng.end))


@dashboard.route('/due-soon')
@login_required
def due_soon():
    return jsonify(build_dashboard().orders_due_in(days=int_arg('days', 2)))


def _stringify(row: dict) -> dict:
    """Decimals → str so amounts keep their exact cents in JSON."""
    return {k: str(v) if isinstance(v, Decimal) else v for k, v in row.items()}
