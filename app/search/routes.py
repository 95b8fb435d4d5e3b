"""
Search routes: suggestions, related politicians and fuzzy search.
"""
from typing import Optional

from flask import Blueprint, request, jsonify

from politician_service.search import MIN_QUERY_LENGTH, SearchService

from ..responses import error_response, query_float, query_int, with_deadline


def create_search_routes(
    search_service: SearchService,
    search_config=None,
    request_timeout_seconds: Optional[float] = None,
) -> Blueprint:
    """Create search routes."""
    bp = Blueprint('search', __name__, url_prefix='/search')

    default_suggestions = search_config.default_suggestions if search_config else 10
    default_related = search_config.related_default_limit if search_config else 5
    default_threshold = search_config.fuzzy_default_threshold if search_config else 0.3
    default_fuzzy_limit = search_config.fuzzy_default_limit if search_config else 20

    @bp.route("/suggestions", methods=["GET"])
    async def search_suggestions():
        """Get search suggestions based on partial query."""
        query = request.args.get("q", "").strip()

        if len(query) < MIN_QUERY_LENGTH:
            return jsonify({
                "success": True,
                "data": [],
                "message": f"Query must be at least {MIN_QUERY_LENGTH} characters"
            })

        try:
            limit = query_int("limit", default_suggestions)
            suggestions = await with_deadline(
                search_service.get_suggestions(query, limit), request_timeout_seconds
            )
            return jsonify({"success": True, "data": suggestions, "query": query})
        except Exception as e:
            return error_response(e, data=[])

    @bp.route("/related", methods=["GET"])
    async def related_politicians():
        """Politicians related to the one identified by ``id``."""
        politician_id = request.args.get("id", "").strip()
        try:
            limit = query_int("limit", default_related)
            related = await with_deadline(
                search_service.get_related_politicians(politician_id, limit),
                request_timeout_seconds,
            )
            return jsonify({
                "success": True,
                "data": [r.to_dict() for r in related],
                "politicianId": politician_id,
                "total": len(related)
            })
        except Exception as e:
            return error_response(e)

    @bp.route("/fuzzy", methods=["GET"])
    async def fuzzy_search():
        """Typo-tolerant politician search."""
        query = request.args.get("q", "").strip()
        try:
            threshold = query_float("threshold", default_threshold)
            limit = query_int("limit", default_fuzzy_limit)
            matches = await with_deadline(
                search_service.fuzzy_search(query, threshold, limit), request_timeout_seconds
            )
            return jsonify({
                "success": True,
                "data": [m.to_dict() for m in matches],
                "query": query,
                "threshold": threshold,
                "total": len(matches)
            })
        except Exception as e:
            return error_response(e)

    return bp
