# Overview: Flask API routes for customers operations; parses input and returns JSON responses.

from flask import Blueprint, request

from ..errors import error_response, not_found
from ..models import Customer
from ..services import customer_service
from ..validation import ModelValidationPolicy, ValidationError, validate_payload
from ..decorators import require_auth, require_permission

CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "email", "phone", "address"},
    required_on_create={"name"},
)

customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.get("")
@require_auth
@require_permission("MANAGE_CUSTOMERS")
def list_customers_route():
    items = customer_service.list_customers(search=request.args.get("search"))
    return {"items": [c.to_dict() for c in items], "count": len(items)}


@customers_bp.get("/<int:customer_id>")
@require_auth
@require_permission("MANAGE_CUSTOMERS")
def get_customer_route(customer_id: int):
    customer = customer_service.get_customer(customer_id)
    if customer is None:
        return not_found("Customer")
    return customer.to_dict()


@customers_bp.post("")
@require_auth
@require_permission("MANAGE_CUSTOMERS")
def create_customer_route():
    try:
        patch = validate_payload(
            model=Customer,
            payload=request.get_json(silent=True) or {},
            policy=CUSTOMER_POLICY,
            partial=False,
        )
    except ValidationError as e:
        return error_response(e)

    return customer_service.create_customer(patch=patch).to_dict(), 201


@customers_bp.put("/<int:customer_id>")
@require_auth
@require_permission("MANAGE_CUSTOMERS")
def update_customer_route(customer_id: int):
    try:
        patch = validate_payload(
            model=Customer,
            payload=request.get_json(silent=True) or {},
            policy=CUSTOMER_POLICY,
            partial=True,
        )
    except ValidationError as e:
        return error_response(e)

    customer = customer_service.update_customer(customer_id, patch)
    if customer is None:
        return not_found("Customer")
    return customer.to_dict()


@customers_bp.delete("/<int:customer_id>")
@require_auth
@require_permission("MANAGE_CUSTOMERS")
def delete_customer_route(customer_id: int):
    if not customer_service.delete_customer(customer_id):
        return not_found("Customer")
    return {"ok": True}, 200
