"""Shared helpers for the API blueprints."""

from flask import jsonify, request

DEFAULT_PAGE_SIZE = 200
MAX_PAGE_SIZE = 1000


def _int_arg(name, default, lower=0, upper=None):
    try:
        value = int(request.args.get(name, default))
    except (TypeError, ValueError):
        return default
    value = max(value, lower)
    return min(value, upper) if upper is not None else value


def list_response(rows, serialize):
    """JSON list envelope with ``?limit=&offset=`` applied to ``rows``.

    ``total`` counts every row before slicing so clients can page.
    """
    limit = _int_arg("limit", DEFAULT_PAGE_SIZE, lower=1, upper=MAX_PAGE_SIZE)
    offset = _int_arg("offset", 0)
    window = rows[offset:offset + limit]
    return jsonify({
        "items": [serialize(row) for row in window],
        "total": len(rows),
        "limit": limit,
        "offset": offset,
    }), 200
