"""
Recommendation routes: ranked recommendations and feedback.
"""
from typing import Any, Dict, List, Optional

from flask import Blueprint, jsonify, request

from politician_service.models import RecommendationRequest
from politician_service.recommendations import RecommendationEngine

from ..responses import error_response, with_deadline


def _exclude_ids_from_args() -> List[str]:
    """Collect exclusions from ``exclude``/``excludeIds`` (repeated or comma-separated)."""
    ids: List[str] = []
    for name in ("exclude", "excludeIds", "exclude[]"):
        for raw in request.args.getlist(name):
            ids.extend(part.strip() for part in raw.split(",") if part.strip())
    return ids


def _request_body_from_args() -> Dict[str, Any]:
    args = request.args
    location: Optional[Dict[str, Any]] = None
    if args.get("lat") is not None or args.get("lng") is not None:
        location = {"latitude": args.get("lat"), "longitude": args.get("lng")}

    return {
        "userId": args.get("userId"),
        "type": args.get("type"),
        "limit": args.get("limit"),
        "excludeIds": _exclude_ids_from_args(),
        "context": {
            "currentEntityId": args.get("currentEntityId") or args.get("currentPoliticianId"),
            "searchQuery": args.get("searchQuery"),
            "location": location,
            "timeOfDay": args.get("timeOfDay"),
            "deviceType": args.get("deviceType"),
        },
    }


def create_recommendation_blueprint(
    engine: RecommendationEngine,
    default_limit: int = 10,
    request_timeout_seconds: Optional[float] = None,
) -> Blueprint:
    """Create recommendation routes."""
    bp = Blueprint("recommendations", __name__, url_prefix="/recommendations")

    async def _recommend(body: Dict[str, Any]):
        rec_request = RecommendationRequest.from_dict(body, default_limit=default_limit)
        result = await with_deadline(
            engine.generate_recommendations(rec_request), request_timeout_seconds
        )
        return jsonify({
            "success": True,
            "data": result.to_dict(),
            "request": rec_request.to_dict(),
        })

    @bp.route("", methods=["GET"])
    async def get_recommendations():
        """Recommendations from query parameters."""
        try:
            return await _recommend(_request_body_from_args())
        except Exception as e:
            return error_response(e)

    @bp.route("", methods=["POST"])
    async def post_recommendations():
        """Recommendations from a JSON body."""
        try:
            body = request.get_json(silent=True)
            return await _recommend(body if body is not None else {})
        except Exception as e:
            return error_response(e)

    @bp.route("/feedback", methods=["POST"])
    async def record_feedback():
        """Record feedback on a recommendation."""
        try:
            body = request.get_json(silent=True)
            if not isinstance(body, dict):
                body = {}
            event = await with_deadline(
                engine.update_recommendation_models(
                    body.get("userId"), body.get("recommendationId"), body.get("feedback")
                ),
                request_timeout_seconds,
            )
            return jsonify({
                "success": True,
                "message": "Feedback recorded",
                "data": event.to_dict(),
            })
        except Exception as e:
            return error_response(e)

    @bp.route("/feedback", methods=["GET"])
    async def feedback_history():
        """Feedback recorded by ``userId``, oldest first."""
        user_id = request.args.get("userId", "").strip()
        try:
            events = await with_deadline(
                engine.get_feedback_history(user_id), request_timeout_seconds
            )
            return jsonify({
                "success": True,
                "data": [event.to_dict() for event in events],
                "userId": user_id,
                "total": len(events),
            })
        except Exception as e:
            return error_response(e)

    return bp
