"""
studio/utils/http.py
--------------------
Turn service results into JSON responses.

    validation → 400   not_found → 404   conflict → 409   store/internal → 500
"""
from flask import jsonify, request

STATUS_BY_KIND = {
    'validation': 400,
    'not_found':  404,
    'conflict':   409,
    'store':      500,
    'internal':   500,
}


def result_response(result, success_status: int = 200):
    if result.success:
        return jsonify(result.as_dict()), success_status
    return jsonify(result.as_dict()), STATUS_BY_KIND.get(result.error_kind, 500)


def json_body() -> dict:
    """Request JSON, falling back to form fields."""
    data = request.get_json(silent=True)
    if data is None:
        data = request.form.to_dict()
    if not isinstance(data, dict):
        return {}
    return data


def int_arg(name: str, default: int) -> int:
    try:
        return int(request.args.get(name, default))
    except (TypeError, ValueError):
        return default
