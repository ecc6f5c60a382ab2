from flask import Blueprint, request, jsonify
from studio.auth.decorators import login_required
from studio.customers.services import build_customer_service
from studio.utils.http import result_response, json_body, int_arg

customers = Blueprint('customers', __name__)

CUSTOMER_FIELDS = (
    'first_name', 'last_name', 'phone', 'birth_date', 'note',
    'referrer_id', 'referrer_first_name', 'referrer_last_name',
)


def _customer_kwargs(data: dict) -> dict:
    return {name: data.get(name) for name in CUSTOMER_FIELDS}


@customers.route('/search')
@login_required
def search():
    q = request.args.get('q', '').strip()
    results = build_customer_service().search_customers(
        q, limit=int_arg('limit', 20), offset=int_arg('offset', 0)
    )
    return jsonify(results)


@customers.route('/', methods=['POST'])
@login_required
def create():
    result = build_customer_service().register_customer(**_customer_kwargs(json_body()))
    return result_response(result, 201)


@customers.route('/<int:customer_id>')
@login_required
def detail(customer_id):
    return result_response(build_customer_service().get_customer(customer_id))


@customers.route('/<int:customer_id>', methods=['PUT', 'POST'])
@login_required
def edit(customer_id):
    result = build_customer_service().update_customer(customer_id, **_customer_kwargs(json_body()))
    return result_response(result)


@customers.route('/<int:customer_id>', methods=['DELETE'])
@login_required
def delete(customer_id):
    return result_response(build_customer_service().delete_customer(customer_id))
