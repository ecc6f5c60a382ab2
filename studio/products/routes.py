from flask import Blueprint, request, jsonify
from studio.auth.decorators import login_required, admin_required
from studio.products.services import build_product_service
from studio.utils.http import result_response, json_body, int_arg

products = Blueprint('products', __name__)


@products.route('/')
@login_required
def index():
    results = build_product_service().search_products(
        request.args.get('q', '').strip(), limit=int_arg('limit', 50), offset=int_arg('offset', 0)
    )
    return jsonify(results)


@products.route('/', methods=['POST'])
@admin_required
def create():
    return result_response(build_product_service().register_product(json_body()), 201)


@products.route('/<int:product_id>', methods=['PUT', 'POST'])
@admin_required
def edit(product_id):
    return result_response(build_product_service().update_product(product_id, json_body()))


@products.route('/<int:product_id>', methods=['DELETE'])
@admin_required
def delete(product_id):
    return result_response(build_product_service().delete_product(product_id))
