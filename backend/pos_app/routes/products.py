# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/pos_app/routes/products.py
"""
Product catalog routes.

SECURITY: All routes require authentication.
- Read operations require VIEW_PRODUCTS permission
- Write operations require MANAGE_PRODUCTS permission
"""
from flask import Blueprint, request

from ..errors import error_response, not_found
from ..services import products_service
from ..services.inventory_service import AdjustError
from ..models import Product
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_product,
    ValidationError,
    ConflictError,
)
from ..decorators import require_auth, require_permission

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={"name", "price_cents", "category", "stock", "image_url"},
    required_on_create={"name", "price_cents"},
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
@require_permission("VIEW_PRODUCTS")
def list_products():
    """
    List products ordered by name.

    Query params:
    - search: str (optional) - substring of name or category
    """
    search = request.args.get("search")
    items = products_service.list_products(search=search)
    return {"items": [p.to_dict() for p in items], "count": len(items)}


@products_bp.get("/<int:product_id>")
@require_auth
@require_permission("VIEW_PRODUCTS")
def get_product(product_id: int):
    product = products_service.get_product(product_id)
    if product is None:
        return not_found("Product")
    return product.to_dict()


@products_bp.post("")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def create_product_route():
    """
    Create a new product. Opening stock is logged as an inbound entry.
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch)
    except ValidationError as e:
        return error_response(e)

    created = products_service.create_product(patch=patch)
    return created.to_dict(), 201


@products_bp.put("/<int:product_id>")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def update_product_route(product_id: int):
    """
    Partially update a product. A stock value is recorded as an
    absolute adjustment ("Manual stock edit").
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
        enforce_rules_product(patch)
        updated = products_service.update_product(product_id, patch)
    except (ValidationError, AdjustError) as e:
        return error_response(e)

    if updated is None:
        return not_found("Product")
    return updated.to_dict()


@products_bp.delete("/<int:product_id>")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def delete_product_route(product_id: int):
    """Delete a product that has never been sold."""
    try:
        deleted = products_service.delete_product(product_id)
    except ConflictError as e:
        return error_response(e)

    if not deleted:
        return not_found("Product")

    return {"ok": True}, 200
