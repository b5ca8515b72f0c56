# backend/pos_app/routes/inventory.py
"""
Inventory routes.

SECURITY: All routes require authentication.
- Adjustments require ADJUST_INVENTORY permission
- The change log requires VIEW_INVENTORY permission
"""
from flask import Blueprint, request, g

from ..errors import error_response
from ..services import inventory_service
from ..services.inventory_service import AdjustError
from ..validation import ValidationError, coerce_int, parse_adjust_payload
from ..decorators import require_auth, require_permission


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")

MAX_LOG_LIMIT = 1000


@inventory_bp.post("/adjust")
@require_auth
@require_permission("ADJUST_INVENTORY")
def adjust_inventory_route():
    """
    Record a stock adjustment.

    Body: {product_id, kind: inbound|outbound|adjustment, quantity, reason?}
    """
    try:
        data = parse_adjust_payload(request.get_json(silent=True))
        product = inventory_service.adjust_stock(
            data["product_id"],
            data["kind"],
            data["quantity"],
            data["reason"],
            operator=g.current_user,
        )
    except (ValidationError, AdjustError) as e:
        return error_response(e)

    return {"product": product.to_dict()}, 200


@inventory_bp.get("/logs")
@require_auth
@require_permission("VIEW_INVENTORY")
def list_logs_route():
    """
    Inventory change log, newest first.

    Query params:
    - product_id: int (optional)
    - limit: int (optional, max 1000)
    """
    try:
        product_id = request.args.get("product_id")
        product_id = coerce_int(product_id, "product_id") if product_id else None
        limit = request.args.get("limit")
        limit = coerce_int(limit, "limit") if limit else None
    except ValidationError as e:
        return error_response(e)

    if limit is not None:
        limit = max(1, min(limit, MAX_LOG_LIMIT))

    entries = inventory_service.list_log_entries(product_id=product_id, limit=limit)
    return {"items": [e.to_dict() for e in entries], "count": len(entries)}
