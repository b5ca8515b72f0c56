# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

# backend/pos_app/routes/sales.py
"""
Sales routes: checkout and sales history.

SECURITY:
- Checkout requires CREATE_SALE permission
- History requires VIEW_SALES permission
"""
from flask import Blueprint, request, g, current_app

from ..errors import error_response, not_found
from ..services import ledger_service
from ..services.checkout_service import CartLine, CheckoutError, checkout
from ..services.return_service import get_sale_returns
from ..validation import ValidationError, parse_cart_payload
from ..decorators import require_auth, require_permission
from pos_app.time_utils import parse_day


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("/checkout")
@require_auth
@require_permission("CREATE_SALE")
def checkout_route():
    """
    Check out a cart as one sale.

    Body: {"lines": [{product_id, quantity, unit_price_cents, product_name?}]}

    Returns 201 with the sale and its lines. 409 on insufficient stock or a
    lost race (code CONFLICT, retryable), 503 when the store failed and the
    outcome must be checked in the sales history.
    """
    try:
        lines = [CartLine(**line) for line in parse_cart_payload(request.get_json(silent=True))]
        sale = checkout(lines, g.current_user)
    except (ValidationError, CheckoutError) as e:
        return error_response(e)

    current_app.logger.info("checkout by %s -> sale %s", g.current_user.username, sale.id)
    return {"sale": sale.to_dict(include_lines=True)}, 201


@sales_bp.get("")
@require_auth
@require_permission("VIEW_SALES")
def list_sales_route():
    """
    Sales history, newest first.

    Query params:
    - day: YYYY-MM-DD (optional, UTC)
    - search: str (optional) - operator, sale id or total in cents
    """
    try:
        day = parse_day(request.args.get("day"))
    except ValueError:
        return error_response(ValidationError("day must be YYYY-MM-DD"))

    sales = ledger_service.list_sales(day=day, search=request.args.get("search"))
    return {"items": [s.to_dict() for s in sales], "count": len(sales)}


@sales_bp.get("/<int:sale_id>")
@require_auth
@require_permission("VIEW_SALES")
def get_sale_route(sale_id: int):
    sale = ledger_service.get_sale(sale_id)
    if sale is None:
        return not_found("Sale")

    data = sale.to_dict(include_lines=True)
    data["returns"] = [r.to_dict() for r in get_sale_returns(sale_id)]
    return {"sale": data}
