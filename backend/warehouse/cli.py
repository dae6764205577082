# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/warehouse/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create any missing tables (idempotent, keeps data).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask system seed-demo
#   Load demo zones, products and a demo user into an empty database.
#
# User inspection/bootstrap:
# - python -m flask users list
#   List all users with active status and last login.
# - python -m flask users create --email jane@example.com --password "Password123"
#   Create a user (prompts if options are omitted).
#
# Maintenance:
# - python -m flask maintenance cleanup-sessions --retention-days 30
#   Delete expired or revoked session tokens older than the retention window.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Product, User, Zone
from .services.auth_service import create_user, PasswordValidationError
from .services.products_service import create_product_with_initial_stock
from .services import session_service
from .validation import ConflictError


DEMO_EMAIL = "demo@warehouse.local"
DEMO_PASSWORD = "Password123"

DEMO_ZONES = [
    ("Zone A", "Fast movers near dispatch", 50),
    ("Zone B", "Bulk shelving", 200),
    ("Cold Room", "Temperature controlled", 20),
]

# (product_code, name, category, zone name, stock, min_stock, unit_price_cents)
DEMO_PRODUCTS = [
    ("BOLT-M8", "M8 Hex Bolt (100 pack)", "Hardware", "Zone A", 120, 20, 1299),
    ("GLOVE-L", "Nitrile Gloves L", "Safety", "Zone A", 8, 10, 899),
    ("PALLET-EU", "EUR Pallet", "Logistics", "Zone B", 40, 10, 1850),
    ("TAPE-48", "Packing Tape 48mm", "Packaging", "Zone B", 0, 25, 349),
    ("ICEPACK-1", "Gel Ice Pack", "Cold Chain", "Cold Room", 15, 5, 275),
]


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create any missing tables. Existing tables and data are left alone."""
    db.create_all()
    click.echo("PASS Database schema is up to date.")


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

    click.echo("PASS Database reset complete. Run 'python -m flask system seed-demo' to load demo data.")


@system_group.command('seed-demo')
@with_appcontext
def seed_demo():
    """
    Load demo data. Refuses to run when products already exist.

    Initial stock goes through the stock ledger, so every demo product with
    stock also gets an "Initial stock" movement.
    """
    if db.session.query(Product.id).first() is not None:
        click.echo("WARN Products already exist, skipping demo seed.")
        return

    user = db.session.query(User).filter_by(email=DEMO_EMAIL).first()
    if user is None:
        user = create_user(email=DEMO_EMAIL, password=DEMO_PASSWORD, first_name="Demo", last_name="User")
        click.echo(f"PASS Created user: {DEMO_EMAIL} / {DEMO_PASSWORD}")

    zones = {}
    for name, description, capacity in DEMO_ZONES:
        zone = Zone(name=name, description=description, capacity=capacity)
        db.session.add(zone)
        zones[name] = zone
    db.session.commit()
    click.echo(f"PASS Created {len(zones)} zones")

    for code, name, category, zone_name, stock, min_stock, price in DEMO_PRODUCTS:
        create_product_with_initial_stock(
            patch={
                "product_code": code,
                "name": name,
                "category": category,
                "zone_id": zones[zone_name].id,
                "current_stock": stock,
                "min_stock": min_stock,
                "unit_price_cents": price,
            },
            acting_user_id=user.id,
        )
    click.echo(f"PASS Created {len(DEMO_PRODUCTS)} products")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--first-name', default=None, help='First name')
@click.option('--last-name', default=None, help='Last name')
@with_appcontext
def create_user_cli(email, password, first_name, last_name):
    """
    Create a new user.

    Password must be at least 8 characters with at least one letter and
    one digit.
    """
    try:
        user = create_user(email=email, password=password, first_name=first_name, last_name=last_name)
    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {e}")
        raise SystemExit(1)
    except ConflictError as e:
        click.echo(f"FAIL {e}")
        raise SystemExit(1)
    except ValueError as e:
        click.echo(f"FAIL {e}")
        raise SystemExit(1)

    click.echo(f"PASS Created user {user.email} (ID: {user.id})")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users."""
    users = db.session.query(User).order_by(User.id.asc()).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Email':<35} {'Name':<20} {'Active':<8} {'Last login'}")
    click.echo("="*80)

    for user in users:
        active_str = "Yes" if user.is_active else "No"
        last_login = user.last_login_at.strftime("%Y-%m-%d %H:%M") if user.last_login_at else "never"
        click.echo(f"{user.id:<5} {user.email:<35} {user.display_name:<20} {active_str:<8} {last_login}")


@click.group('maintenance')
def maintenance_group():
    """Maintenance commands."""


@maintenance_group.command('cleanup-sessions')
@click.option('--retention-days', type=int, default=30, show_default=True)
@with_appcontext
def cleanup_sessions_cli(retention_days):
    """Delete expired or revoked session tokens older than the retention window."""
    deleted = session_service.cleanup_expired_sessions(retention_days=retention_days)
    click.echo(f"Deleted {deleted} session tokens older than {retention_days} days.")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(maintenance_group)
