# Overview: Flask API routes for reports operations; parses input and returns JSON responses.

from flask import Blueprint, request

from ..errors import error_response
from ..services.reporting_service import daily_summary
from ..validation import ValidationError
from ..decorators import require_auth, require_permission
from pos_app.time_utils import parse_day, utcnow


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/daily-summary")
@require_auth
@require_permission("VIEW_REPORTS")
def daily_summary_route():
    """
    Query params:
    - day: YYYY-MM-DD (optional, UTC; defaults to today)
    """
    try:
        day = parse_day(request.args.get("day")) or utcnow().date()
    except ValueError:
        return error_response(ValidationError("day must be YYYY-MM-DD"))

    return daily_summary(day)
