"""
User and role administration tests.

Verifies:
- Admins create, edit and delete users; weak passwords and duplicates rejected
- Admins cannot delete or deactivate themselves
- Role permission sets can be replaced, except the admin role's
- Deleting a role moves its users to cashier; built-in roles are protected
"""

import pytest

from pos_app.models import User
from pos_app.services import permission_service
from pos_app.validation import ConflictError, ValidationError


class TestUserAdministration:

    def test_create_user(self, client, admin_headers, login):
        resp = client.post(
            "/api/admin/users",
            json={"username": "dana", "password": "Register42", "name": "Dana", "role": "manager"},
            headers=admin_headers,
        )
        assert resp.status_code == 201
        user = resp.get_json()["user"]
        assert user["role"] == "manager"
        assert "password_hash" not in user

        assert login("dana", "Register42") is not None

    def test_create_defaults_to_cashier(self, client, admin_headers):
        resp = client.post("/api/admin/users", json={"username": "eli", "password": "Register42"},
                           headers=admin_headers)
        assert resp.get_json()["user"]["role"] == "cashier"

    def test_weak_password(self, client, admin_headers):
        resp = client.post("/api/admin/users", json={"username": "eli", "password": "short"},
                           headers=admin_headers)
        assert resp.status_code == 400
        assert resp.get_json()["code"] == "WEAK_PASSWORD"

    def test_duplicate_username(self, client, admin_headers):
        resp = client.post("/api/admin/users", json={"username": "cashier", "password": "Register42"},
                           headers=admin_headers)
        assert resp.status_code == 409

    def test_unknown_role(self, client, admin_headers):
        resp = client.post("/api/admin/users",
                           json={"username": "eli", "password": "Register42", "role": "owner"},
                           headers=admin_headers)
        assert resp.status_code == 400

    def test_change_role(self, client, admin_headers, users, login):
        resp = client.put(f"/api/admin/users/{users['cashier'].id}", json={"role": "manager"},
                          headers=admin_headers)
        assert resp.status_code == 200

        headers = login("cashier")
        me = client.get("/api/auth/me", headers=headers).get_json()
        assert "ADJUST_INVENTORY" in me["permissions"]

    def test_update_rejects_unknown_field(self, client, admin_headers, users):
        resp = client.put(f"/api/admin/users/{users['cashier'].id}", json={"username": "root"},
                          headers=admin_headers)
        assert resp.status_code == 400

    def test_cannot_deactivate_self(self, client, admin_headers, users):
        resp = client.put(f"/api/admin/users/{users['admin'].id}", json={"is_active": False},
                          headers=admin_headers)
        assert resp.status_code == 409

    def test_cannot_delete_self(self, client, admin_headers, users):
        resp = client.delete(f"/api/admin/users/{users['admin'].id}", headers=admin_headers)
        assert resp.status_code == 409

    def test_delete_user_keeps_sales(self, client, admin_headers, cashier_headers, users, products, db_session):
        sale = client.post(
            "/api/sales/checkout",
            json={"lines": [{"product_id": products["espresso"].id, "quantity": 1, "unit_price_cents": 250}]},
            headers=cashier_headers,
        ).get_json()["sale"]
        assert sale["user_id"] == users["cashier"].id

        resp = client.delete(f"/api/admin/users/{users['cashier'].id}", headers=admin_headers)
        assert resp.status_code == 200

        detail = client.get(f"/api/sales/{sale['id']}", headers=admin_headers).get_json()["sale"]
        assert detail["sold_by"] == "Cashier"
        assert detail["user_id"] is None
        assert client.get("/api/sales", headers=cashier_headers).status_code == 401

    def test_get_missing_user(self, client, admin_headers):
        assert client.get("/api/admin/users/9999", headers=admin_headers).status_code == 404
        assert client.delete("/api/admin/users/9999", headers=admin_headers).status_code == 404


class TestRoleAdministration:

    def test_create_role_with_permissions(self, client, admin_headers):
        resp = client.post(
            "/api/admin/roles",
            json={"name": "Stocker", "description": "Back room", "permissions": ["VIEW_PRODUCTS", "ADJUST_INVENTORY"]},
            headers=admin_headers,
        )
        assert resp.status_code == 201
        role = resp.get_json()["role"]
        assert role["name"] == "stocker"
        assert role["permissions"] == ["ADJUST_INVENTORY", "VIEW_PRODUCTS"]

    def test_duplicate_role(self, client, admin_headers):
        resp = client.post("/api/admin/roles", json={"name": "manager"}, headers=admin_headers)
        assert resp.status_code == 409

    def test_unknown_permission_code(self, client, admin_headers):
        resp = client.post("/api/admin/roles", json={"name": "x", "permissions": ["LAUNCH_ROCKETS"]},
                           headers=admin_headers)
        assert resp.status_code == 400

    def test_replace_permissions(self, client, admin_headers, login):
        resp = client.put(
            "/api/admin/roles/cashier/permissions",
            json={"permissions": ["VIEW_PRODUCTS", "CREATE_SALE", "VIEW_REPORTS"]},
            headers=admin_headers,
        )
        assert resp.status_code == 200
        assert resp.get_json()["role"]["permissions"] == ["CREATE_SALE", "VIEW_PRODUCTS", "VIEW_REPORTS"]

        headers = login("cashier")
        assert client.get("/api/reports/daily-summary", headers=headers).status_code == 200
        assert client.get("/api/sales", headers=headers).status_code == 403

    def test_admin_role_is_fixed(self, client, admin_headers):
        resp = client.put("/api/admin/roles/admin/permissions", json={"permissions": []},
                          headers=admin_headers)
        assert resp.status_code == 409

    def test_missing_role(self, client, admin_headers):
        resp = client.put("/api/admin/roles/ghost/permissions", json={"permissions": []},
                          headers=admin_headers)
        assert resp.status_code == 404

    def test_delete_role_moves_users(self, db_session, users):
        permission_service.create_role("stocker", permission_codes=["VIEW_PRODUCTS"])
        users["manager"].role = permission_service.get_role("stocker")
        db_session.commit()

        assert permission_service.delete_role("stocker") == 1
        assert db_session.get(User, users["manager"].id).role.name == "cashier"
        assert permission_service.get_role("stocker") is None

    def test_protected_roles(self, db_session, users):
        with pytest.raises(ConflictError):
            permission_service.delete_role("admin")
        with pytest.raises(ConflictError):
            permission_service.delete_role("cashier")

    def test_delete_missing_role(self, db_session, users):
        with pytest.raises(ValidationError):
            permission_service.delete_role("ghost")

    def test_delete_route(self, client, admin_headers):
        client.post("/api/admin/roles", json={"name": "temp"}, headers=admin_headers)
        resp = client.delete("/api/admin/roles/temp", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.get_json()["users_moved"] == 0
        assert client.delete("/api/admin/roles/temp", headers=admin_headers).status_code == 404


class TestPermissionSetup:

    def test_initialization_is_idempotent(self, db_session, setup_roles):
        assert permission_service.initialize_permissions() == 0
        assert permission_service.create_default_roles() == 0
        assert permission_service.assign_default_role_permissions() == 0

    def test_admin_has_every_permission(self, db_session, users):
        codes = permission_service.get_user_permissions(users["admin"].id)
        assert codes == {p.code for p in permission_service.list_permissions()}

    def test_inactive_user_has_no_permissions(self, db_session, users):
        users["manager"].is_active = False
        db_session.commit()
        assert permission_service.get_user_permissions(users["manager"].id) == set()

    def test_require_permission_denies(self, db_session, users):
        with pytest.raises(permission_service.PermissionDeniedError):
            permission_service.require_permission(users["cashier"].id, "MANAGE_USERS")
