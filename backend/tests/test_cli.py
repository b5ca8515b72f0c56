"""
Flask CLI command tests.
"""

from pos_app.models import InventoryLogEntry, Product, Role, User


class TestSystemCommands:

    def test_init_is_idempotent(self, app, db_session):
        runner = app.test_cli_runner()

        result = runner.invoke(args=["system", "init"])
        assert result.exit_code == 0
        assert "POS System Initialized" in result.output
        assert {r.name for r in db_session.query(Role).all()} == {"admin", "manager", "cashier"}
        assert db_session.query(User).count() == 3

        result = runner.invoke(args=["system", "init"])
        assert result.exit_code == 0
        assert "already exists" in result.output
        assert db_session.query(User).count() == 3


class TestProductCommands:

    def test_seed_then_list(self, app, db_session):
        runner = app.test_cli_runner()

        result = runner.invoke(args=["products", "seed"])
        assert result.exit_code == 0
        assert "Seeded 6 products" in result.output
        assert db_session.query(Product).count() == 6
        assert db_session.query(InventoryLogEntry).filter_by(reason="Initial stock").count() == 6

        result = runner.invoke(args=["products", "seed"])
        assert "Seeded 0 products" in result.output

        result = runner.invoke(args=["products", "list"])
        assert "Croissant" in result.output
        assert "2.50" in result.output

    def test_list_empty(self, app, db_session):
        result = app.test_cli_runner().invoke(args=["products", "list"])
        assert "No products found." in result.output


class TestUserCommands:

    def test_create_and_list(self, app, setup_roles):
        runner = app.test_cli_runner()
        result = runner.invoke(args=[
            "users", "create", "--username", "ana", "--name", "Ana",
            "--password", "Password123", "--role", "manager",
        ])
        assert result.exit_code == 0
        assert "Created user: ana with role 'manager'" in result.output

        result = runner.invoke(args=["users", "list"])
        assert "ana" in result.output
        assert "manager" in result.output

    def test_create_weak_password(self, app, setup_roles):
        result = app.test_cli_runner().invoke(args=[
            "users", "create", "--username", "ana", "--password", "weak",
        ])
        assert "Password validation failed" in result.output

    def test_perms_for_role(self, app, setup_roles):
        result = app.test_cli_runner().invoke(args=["perms", "list", "--role", "cashier"])
        assert result.exit_code == 0
        assert "CREATE_SALE" in result.output
        assert "MANAGE_USERS" not in result.output
        assert "Total: 3 permissions" in result.output

    def test_perms_unknown_role(self, app, setup_roles):
        result = app.test_cli_runner().invoke(args=["perms", "list", "--role", "owner"])
        assert "not found" in result.output
