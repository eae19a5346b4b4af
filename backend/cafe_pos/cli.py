# Overview: Flask CLI command groups for bootstrap and inspection.

# backend/cafe_pos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables that do not exist yet (development; use "flask db upgrade" otherwise).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask system seed-demo
#   Idempotent demo data: admin and cashier accounts, a small menu with
#   recipes, raw materials and 6 tables.
#
# User inspection/bootstrap:
# - python -m flask users list
#   List all users with role and active status.
# - python -m flask users create --name "Sara" --email sara@cafe.local --password "Password123" --role cashier
#   Create a user (prompts if options are omitted).

import click
from decimal import Decimal
from flask.cli import with_appcontext

from .extensions import db
from .models import Category, DiningTable, InventoryItem, Product, RecipeLink, User, USER_ROLES
from .money import to_minor_units
from .services.auth_service import create_user, PasswordValidationError
from .validation import ConflictError, ValidationError

DEMO_PASSWORD = "Password123"

DEMO_USERS = [
    ("Admin", "admin@cafe.local", "admin"),
    ("Cashier", "cashier@cafe.local", "cashier"),
]

# name -> (quantity, min_quantity, unit_cost)
DEMO_INVENTORY = {
    "Coffee beans (g)": (5000, 500, "0.012"),
    "Milk (ml)": (10000, 1000, "0.001"),
    "Cup": (300, 50, "0.050"),
    "Lid": (300, 50, "0.020"),
}

# category -> [(product, price, {inventory item: quantity per order})]
DEMO_MENU = {
    "Hot drinks": [
        ("Espresso", "1.200", {"Coffee beans (g)": 18, "Cup": 1}),
        ("Latte", "1.500", {"Coffee beans (g)": 18, "Milk (ml)": 200, "Cup": 1, "Lid": 1}),
        ("Cappuccino", "1.500", {"Coffee beans (g)": 18, "Milk (ml)": "150", "Cup": 1, "Lid": 1}),
    ],
    "Desserts": [
        ("Cheesecake", "2.250", {}),
    ],
}

DEMO_TABLE_COUNT = 6


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables (no-op for tables that already exist)."""
    db.create_all()
    click.echo("PASS Tables created.")


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

    click.echo("PASS Database reset complete. Run 'python -m flask system seed-demo' to add demo data.")


@system_group.command('seed-demo')
@with_appcontext
def seed_demo():
    """
    Insert demo data where it is missing.

    Users: admin@cafe.local / cashier@cafe.local, password "Password123".
    SECURITY: Change passwords immediately outside development!
    """
    db.create_all()

    for name, email, role in DEMO_USERS:
        if db.session.query(User).filter_by(email=email).first():
            click.echo(f"SKIP User exists: {email}")
            continue
        create_user(name=name, email=email, password=DEMO_PASSWORD, role=role)
        click.echo(f"PASS Created {role}: {email}")

    items = {}
    for name, (quantity, min_quantity, unit_cost) in DEMO_INVENTORY.items():
        item = db.session.query(InventoryItem).filter_by(name=name).first()
        if not item:
            item = InventoryItem(
                name=name,
                quantity=Decimal(quantity),
                min_quantity=Decimal(min_quantity),
                unit_cost_minor=to_minor_units(unit_cost),
            )
            db.session.add(item)
        items[name] = item
    db.session.flush()

    for category_name, products in DEMO_MENU.items():
        category = db.session.query(Category).filter_by(name=category_name).first()
        if not category:
            category = Category(name=category_name)
            db.session.add(category)
            db.session.flush()

        for product_name, price, recipe in products:
            product = db.session.query(Product).filter_by(name=product_name).first()
            if product:
                continue
            product = Product(category_id=category.id, name=product_name, price_minor=to_minor_units(price))
            db.session.add(product)
            db.session.flush()
            for item_name, per_order in recipe.items():
                db.session.add(RecipeLink(
                    product_id=product.id,
                    inventory_item_id=items[item_name].id,
                    quantity_per_order=Decimal(str(per_order)),
                ))

    existing_tables = db.session.query(DiningTable).count()
    for number in range(existing_tables + 1, DEMO_TABLE_COUNT + 1):
        db.session.add(DiningTable(name=f"Table {number}", sort_order=number))

    db.session.commit()
    click.echo("PASS Demo menu, inventory and tables ready.")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--name', prompt=True, help='Display name')
@click.option('--email', prompt=True, help='Email address (login)')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(list(USER_ROLES)), prompt=True, help='Role')
@with_appcontext
def create_user_cli(name, email, password, role):
    """
    Create a new user.

    Password must meet strength requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    """
    try:
        user = create_user(name=name, email=email, password=password, role=role)
        click.echo(f"PASS Created user: {user.name} ({user.email}) with role '{role}'")
    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {str(e)}")
        click.echo("Requirements: 8+ chars, uppercase, lowercase, digit")
    except (ConflictError, ValidationError) as e:
        click.echo(f"FAIL Failed to create user: {str(e)}")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with their role."""
    users = db.session.query(User).order_by(User.id.asc()).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Name':<20} {'Email':<30} {'Active':<8} {'Role'}")
    click.echo("="*80)

    for user in users:
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.name:<20} {user.email:<30} {active_str:<8} {user.role}")

    click.echo("="*80 + "\n")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
