# Overview: Flask CLI command groups for bootstrap, catalog data and stock maintenance.

# backend/pharmapos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Idempotent bootstrap: creates tables, the primary warehouse and the admin user.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users:
# - python -m flask users create --username cajero --email cajero@pharmapos.local --password "Password123!" --role user
#
# Catalog:
# - python -m flask warehouses create --name "Sucursal Norte" --location "Av. Norte 12"
# - python -m flask products create --name "Paracetamol 500mg" --price 35.50
# - python -m flask clients create --first-name Ana --last-name Lopez --email ana@example.com
#
# Stock:
# - python -m flask inventory receive --product-id 1 --warehouse-id 1 --quantity 50
#   Record an Entrada movement (creates the inventory row when missing).
# - python -m flask inventory reconcile [--product-id 1 --warehouse-id 1]
#   Replay the movement ledger and compare with stored quantities.

from decimal import Decimal, InvalidOperation

import click
from flask.cli import with_appcontext

from .extensions import db
from .errors import PosError
from .models import Client, InventoryRecord, Product, User
from .models.auth import ROLE_ADMIN, ROLES
from .services import inventory_service
from .services.auth_service import create_user
from .services.pricing_service import to_money
from .services.warehouse_service import create_warehouse, get_primary_warehouse


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--warehouse', 'warehouse_name', default='Almacen Principal', help='Primary warehouse name')
@click.option('--location', default='Main', help='Primary warehouse location')
@with_appcontext
def init_system(warehouse_name, location):
    """
    Initialize PharmaPOS: schema, primary warehouse and admin user.

    Creates:
    - All tables (no-op for existing ones)
    - Primary warehouse (if none exists)
    - User admin/admin@pharmapos.local with password "Password123!"

    SECURITY: Change the password immediately in production!
    """
    click.echo("START Initializing PharmaPOS...")
    db.create_all()

    warehouse = get_primary_warehouse()
    if warehouse is None:
        warehouse = create_warehouse(name=warehouse_name, location=location, is_primary=True)
        click.echo(f"PASS Created primary warehouse: {warehouse.name} (ID: {warehouse.id})")
    else:
        click.echo(f"PASS Using existing primary warehouse: {warehouse.name} (ID: {warehouse.id})")

    if db.session.query(User).filter_by(username="admin").first():
        click.echo("WARN  User 'admin' already exists, skipping...")
    else:
        create_user("admin", "admin@pharmapos.local", "Password123!", role=ROLE_ADMIN)
        click.echo("PASS Created user: admin (admin@pharmapos.local) with role 'admin'")

    click.echo("\nDONE PharmaPOS initialized")
    click.echo("   admin -> admin@pharmapos.local / Password123!  (CHANGE IN PRODUCTION!)")


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


@click.group('users')
def users_group():
    """User management commands."""


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(list(ROLES)), default='user', show_default=True, help='Role')
@with_appcontext
def create_user_cli(username, email, password, role):
    """
    Create a new user.

    Password must meet strength requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character
    """
    try:
        user = create_user(username, email, password, role=role)
    except PosError as e:
        raise click.ClickException(e.message)
    click.echo(f"PASS Created user: {user.username} ({user.email}) with role '{user.role}'")


@click.group('warehouses')
def warehouses_group():
    """Warehouse commands."""


@warehouses_group.command('create')
@click.option('--name', required=True)
@click.option('--location', required=True)
@click.option('--description', default=None)
@click.option('--primary', 'is_primary', is_flag=True, help='Mark as the primary warehouse')
@with_appcontext
def create_warehouse_cli(name, location, description, is_primary):
    try:
        warehouse = create_warehouse(
            name=name,
            location=location,
            description=description,
            is_primary=is_primary,
        )
    except PosError as e:
        raise click.ClickException(e.message)
    flag = " [primary]" if warehouse.is_primary else ""
    click.echo(f"PASS Created warehouse: {warehouse.name} (ID: {warehouse.id}){flag}")


@click.group('products')
def products_group():
    """Product catalog commands."""


@products_group.command('create')
@click.option('--name', required=True)
@click.option('--price', required=True, help='Unit price, e.g. 35.50')
@click.option('--category', default=None)
@click.option('--description', default=None)
@click.option('--prescription', 'requires_prescription', is_flag=True, help='Requires a prescription')
@with_appcontext
def create_product_cli(name, price, category, description, requires_prescription):
    try:
        unit_price = to_money(Decimal(price))
    except InvalidOperation:
        raise click.ClickException(f"Invalid price: {price}")
    if unit_price < 0:
        raise click.ClickException("Price cannot be negative")
    if db.session.query(Product).filter_by(name=name.strip()).first():
        raise click.ClickException(f"Product {name!r} already exists")

    product = Product(
        name=name.strip(),
        price=unit_price,
        category=category,
        description=description,
        requires_prescription=requires_prescription,
        is_active=True,
    )
    db.session.add(product)
    db.session.commit()
    click.echo(f"PASS Created product: {product.name} (ID: {product.id}) at {product.price}")


@click.group('clients')
def clients_group():
    """Client commands."""


@clients_group.command('create')
@click.option('--first-name', required=True)
@click.option('--last-name', default=None)
@click.option('--email', default=None)
@click.option('--phone', default=None)
@with_appcontext
def create_client_cli(first_name, last_name, email, phone):
    email = email.strip().lower() if email else None
    if email and db.session.query(Client).filter_by(email=email).first():
        raise click.ClickException(f"Client with email {email!r} already exists")

    client = Client(first_name=first_name.strip(), last_name=last_name, email=email, phone=phone)
    db.session.add(client)
    db.session.commit()
    click.echo(f"PASS Created client: {client.full_name} (ID: {client.id})")


@click.group('inventory')
def inventory_group():
    """Stock receipt and ledger checks."""


@inventory_group.command('receive')
@click.option('--product-id', type=int, required=True)
@click.option('--warehouse-id', type=int, required=True)
@click.option('--quantity', type=click.IntRange(min=1), required=True)
@click.option('--reason', default='Stock receipt')
@with_appcontext
def receive_cli(product_id, warehouse_id, quantity, reason):
    try:
        result = inventory_service.apply_adjustment(
            product_id=product_id,
            warehouse_id=warehouse_id,
            delta=quantity,
            actor_user_id=None,
            reason=reason,
        )
    except PosError as e:
        raise click.ClickException(e.message)
    click.echo(
        f"PASS Product {product_id} @ warehouse {warehouse_id}: "
        f"{result.previous_quantity} -> {result.new_quantity}"
    )


@inventory_group.command('reconcile')
@click.option('--product-id', type=int, default=None)
@click.option('--warehouse-id', type=int, default=None)
@with_appcontext
def reconcile_cli(product_id, warehouse_id):
    """Replay movements for one pair, or every stocked pair when no ids are given."""
    if product_id is not None and warehouse_id is not None:
        pairs = [(product_id, warehouse_id)]
    else:
        q = db.session.query(InventoryRecord.product_id, InventoryRecord.warehouse_id)
        if product_id is not None:
            q = q.filter(InventoryRecord.product_id == product_id)
        if warehouse_id is not None:
            q = q.filter(InventoryRecord.warehouse_id == warehouse_id)
        pairs = q.order_by(InventoryRecord.product_id, InventoryRecord.warehouse_id).all()

    failures = 0
    for pid, wid in pairs:
        report = inventory_service.reconcile(pid, wid)
        if report.is_consistent:
            click.echo(f"PASS product {pid} @ warehouse {wid}: {report.stored_quantity} ({report.movement_count} movements)")
        else:
            failures += 1
            click.echo(
                f"FAIL product {pid} @ warehouse {wid}: stored {report.stored_quantity}, "
                f"replayed {report.replayed_quantity}, breaks at movements {report.breaks}"
            )

    click.echo(f"\n{len(pairs)} pairs checked, {failures} inconsistent")
    if failures:
        raise SystemExit(1)


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(warehouses_group)
    app.cli.add_command(products_group)
    app.cli.add_command(clients_group)
    app.cli.add_command(inventory_group)
