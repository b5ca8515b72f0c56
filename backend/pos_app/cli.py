# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/pos_app/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (or use: flask --app pos_app ...).
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Full idempotent bootstrap: creates tables, permissions, roles and default users.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Catalog:
# - python -m flask products seed
#   Insert the demo catalog (skips products that already exist by name).
# - python -m flask products list
#
# Users:
# - python -m flask users list
# - python -m flask users create --username ana --name "Ana" --password "Password123" --role cashier
#
# Permissions:
# - python -m flask perms list [--role cashier] [--category SALES]

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Permission, Product, Role, User
from .services import permission_service
from .services.auth_service import PasswordValidationError, create_user
from .services.products_service import create_product
from .validation import ConflictError, ValidationError

DEFAULT_PASSWORD = "Password123"

DEFAULT_USERS = [
    ("admin", "Administrator", "admin"),
    ("manager", "Store Manager", "manager"),
    ("cashier", "Cashier", "cashier"),
]

DEMO_PRODUCTS = [
    {"name": "Café Espresso", "price_cents": 250, "category": "Bebidas", "stock": 100},
    {"name": "Croissant", "price_cents": 180, "category": "Panadería", "stock": 50},
    {"name": "Jugo de Naranja", "price_cents": 300, "category": "Bebidas", "stock": 75},
    {"name": "Muffin de Arándanos", "price_cents": 220, "category": "Panadería", "stock": 40},
    {"name": "Sandwich de Pavo", "price_cents": 550, "category": "Comida", "stock": 30},
    {"name": "Té Verde", "price_cents": 200, "category": "Bebidas", "stock": 90},
]


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """
    Initialize the POS: tables, permissions, roles and default users.

    Creates:
    - Roles: admin, manager, cashier
    - Users: admin, manager, cashier
    - All passwords default to: "Password123"

    SECURITY: Change passwords immediately in production!
    """
    click.echo("START Initializing POS system...")
    db.create_all()

    click.echo("\nLIST Creating roles...")
    permission_service.create_default_roles()
    roles = db.session.query(Role).all()
    click.echo(f"PASS Roles: {', '.join(r.name for r in roles)}")

    click.echo("\nSECURITY Initializing permissions...")
    perm_count = permission_service.initialize_permissions()
    assignment_count = permission_service.assign_default_role_permissions()
    click.echo(f"PASS Created {perm_count} permissions, {assignment_count} role assignments")

    click.echo("\nUSERS Creating default users...")
    for username, name, role_name in DEFAULT_USERS:
        if db.session.query(User).filter_by(username=username).first():
            click.echo(f"WARN  User '{username}' already exists, skipping...")
            continue
        try:
            create_user(username=username, password=DEFAULT_PASSWORD, name=name, role_name=role_name)
            click.echo(f"PASS Created user: {username} with role '{role_name}'")
        except (PasswordValidationError, ValidationError, ConflictError) as e:
            click.echo(f"FAIL Failed to create user '{username}': {e}")

    click.echo("\n" + "=" * 60)
    click.echo("DONE POS System Initialized")
    click.echo("=" * 60)
    click.echo("\nDefault Credentials (CHANGE IN PRODUCTION!):")
    for username, _, _ in DEFAULT_USERS:
        click.echo(f"   {username:<9} / {DEFAULT_PASSWORD}")
    click.echo("")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete. Run 'python -m flask system init' to initialize.")


@click.group('products')
def products_group():
    """Catalog inspection and seeding commands."""


@products_group.command('seed')
@with_appcontext
def seed_products():
    """Insert the demo catalog; existing names are left alone."""
    created = 0
    for item in DEMO_PRODUCTS:
        if db.session.query(Product).filter_by(name=item["name"]).first():
            click.echo(f"WARN  Product '{item['name']}' already exists, skipping...")
            continue
        create_product(patch=dict(item))
        created += 1
    click.echo(f"PASS Seeded {created} products")


@products_group.command('list')
@with_appcontext
def list_products_cli():
    """List products with price and stock."""
    products = db.session.query(Product).order_by(Product.name).all()
    if not products:
        click.echo("No products found.")
        return

    click.echo("\n" + "=" * 80)
    click.echo(f"{'ID':<5} {'Name':<30} {'Category':<15} {'Price':>10} {'Stock':>8}")
    click.echo("=" * 80)
    for p in products:
        click.echo(f"{p.id:<5} {p.name:<30} {p.category:<15} {p.price_cents / 100:>10.2f} {p.stock:>8}")
    click.echo("=" * 80 + "\n")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--name', default=None, help='Display name (defaults to username)')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', default='cashier', show_default=True, help='Role name')
@with_appcontext
def create_user_cli(username, name, password, role):
    """
    Create a new user.

    Password must be 8+ characters with upper and lower case letters and a digit.
    """
    try:
        user = create_user(username=username, password=password, name=name, role_name=role)
    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {e}")
        return
    except (ValidationError, ConflictError) as e:
        click.echo(f"FAIL Failed to create user: {e}")
        return

    click.echo(f"PASS Created user: {user.username} with role '{user.role.name}'")


@users_group.command('list')
@with_appcontext
def list_users_cli():
    """List all users with their roles."""
    users = db.session.query(User).order_by(User.username).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "=" * 80)
    click.echo(f"{'ID':<5} {'Username':<20} {'Name':<25} {'Active':<8} {'Role'}")
    click.echo("=" * 80)

    for user in users:
        active_str = "Yes" if user.is_active else "No"
        role = user.role.name if user.role else "none"
        click.echo(f"{user.id:<5} {user.username:<20} {user.name:<25} {active_str:<8} {role}")

    click.echo("=" * 80 + "\n")


@click.group('perms')
def perms_group():
    """Permission inspection commands."""


@perms_group.command('list')
@click.option('--role', help='Filter by role name')
@click.option('--category', help='Filter by category')
@with_appcontext
def list_permissions_cli(role, category):
    """List all permissions, optionally filtered by role or category."""
    query = db.session.query(Permission)

    if role:
        role_obj = db.session.query(Role).filter_by(name=role).first()
        if not role_obj:
            click.echo(f"FAIL Role '{role}' not found")
            return
        codes = [rp.permission.code for rp in role_obj.role_permissions]
        query = query.filter(Permission.code.in_(codes))
        title = f"Permissions for role: {role.upper()}"
    elif category:
        query = query.filter_by(category=category)
        title = f"Permissions in category: {category}"
    else:
        title = "All Permissions"

    perms = query.order_by(Permission.category, Permission.code).all()

    click.echo(f"\n{'=' * 80}")
    click.echo(title)
    click.echo(f"{'=' * 80}\n")

    current_category = None
    for perm in perms:
        if perm.category != current_category:
            if current_category:
                click.echo("")
            click.echo(f"CATEGORY {perm.category}")
            click.echo("-" * 80)
            current_category = perm.category

        click.echo(f"  {perm.code:<28} {perm.name}")

    click.echo(f"\n Total: {len(perms)} permissions\n")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(products_group)
    app.cli.add_command(users_group)
    app.cli.add_command(perms_group)
