from flask import Blueprint
from studio.auth.decorators import login_required, current_user_id
from studio.orders.workflow import build_order_workflow
from studio.utils.http import result_response, json_body

orders = Blueprint('orders', __name__)


def _split_order_payload(data: dict):
    fields = {k: v for k, v in data.items() if k != 'items'}
    return fields, data.get('items') or []


@orders.route('/', methods=['POST'])
@login_required
def create():
    fields, items = _split_order_payload(json_body())
    result = build_order_workflow().create_order(fields, items, changed_by=current_user_id())
    return result_response(result, 201)


@orders.route('/<int:order_id>')
@login_required
def detail(order_id):
    return result_response(build_order_workflow().get_order(order_id))


@orders.route('/<int:order_id>', methods=['PUT', 'POST'])
@login_required
def edit(order_id):
    fields, items = _split_order_payload(json_body())
    result = build_order_workflow().update_order(order_id, fields, items, changed_by=current_user_id())
    return result_response(result)


@orders.route('/<int:order_id>/status', methods=['POST'])
@login_required
def change_status(order_id):
    data = json_body()
    result = build_order_workflow().update_status(
        order_id, data.get('status'), changed_by=current_user_id(), notes=data.get('notes')
    )
    return result_response(result)


@orders.route('/<int:order_id>/complete', methods=['POST'])
@login_required
def complete(order_id):
    return result_response(build_order_workflow().complete_order(order_id, changed_by=current_user_id()))


@orders.route('/batch-status', methods=['POST'])
@login_required
def batch_status():
    data = json_body()
    result = build_order_workflow().batch_update_status(
        data.get('order_ids') or [], data.get('status'), changed_by=current_user_id()
    )
    return result_response(result)


@orders.route('/<int:order_id>/priority', methods=['POST'])
@login_required
def change_priority(order_id):
    result = build_order_workflow().update_priority(order_id, json_body().get('priority'))
    return result_response(result)


@orders.route('/<int:order_id>', methods=['DELETE'])
@login_required
def delete(order_id):
    return result_response(build_order_workflow().delete_order(order_id))
