# Overview: Flask API routes for returns history; read-only.

from flask import Blueprint, request

from ..errors import error_response, not_found
from ..services import return_service
from ..validation import ValidationError
from ..decorators import require_auth, require_permission
from pos_app.time_utils import parse_day


returns_bp = Blueprint("returns", __name__, url_prefix="/api/returns")


@returns_bp.get("")
@require_auth
@require_permission("VIEW_RETURNS")
def list_returns_route():
    """
    Returns history, newest first.

    Query params:
    - day: YYYY-MM-DD (optional, UTC)
    - search: str (optional) - reason, processor or customer name
    """
    try:
        day = parse_day(request.args.get("day"))
    except ValueError:
        return error_response(ValidationError("day must be YYYY-MM-DD"))

    items = return_service.list_returns(day=day, search=request.args.get("search"))
    return {"items": [r.to_dict() for r in items], "count": len(items)}


@returns_bp.get("/<int:return_id>")
@require_auth
@require_permission("VIEW_RETURNS")
def get_return_route(return_id: int):
    record = return_service.get_return(return_id)
    if record is None:
        return not_found("Return")
    return {"return": record.to_dict(include_lines=True)}
