"""
Flask CLI commands for restaurant setup.

Commands:
- flask init-db: Create the database schema
- flask create-restaurant: Create a restaurant and its owner account
- flask create-staff: Add a staff member who logs in with a PIN
"""

import click
from flask import current_app
from comanda.database import get_session, create_schema
from comanda.exceptions import ComandaError
from comanda.models import Tenant
from comanda.services.settings_service import create_restaurant
from comanda.services.staff_service import create_staff


def init_cli_commands(app):
    """Register CLI commands with Flask app."""

    @app.cli.command('init-db')
    def init_db_command():
        """Create all tables."""
        create_schema()
        click.echo(click.style('✅ Esquema creado', fg='green'))

    @app.cli.command('create-restaurant')
    @click.option('--slug', prompt=True, help='Identifier used by staff devices to log in')
    @click.option('--name', prompt=True, help='Restaurant name')
    @click.option('--email', prompt=True, help='Owner email address')
    @click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Owner password')
    @click.option('--tax-rate', default=None, help='Tax rate as a decimal (0.12)')
    @click.option('--service-charge-rate', default=None, help='Service charge rate as a decimal (0.10)')
    def create_restaurant_command(slug, name, email, password, tax_rate, service_charge_rate):
        """Create a restaurant with its owner account."""
        try:
            owner = create_restaurant(
                get_session(), slug, name, email, password,
                tax_rate=tax_rate or current_app.config.get('DEFAULT_TAX_RATE', '0'),
                service_charge_rate=service_charge_rate or current_app.config.get('DEFAULT_SERVICE_CHARGE_RATE', '0'),
            )
        except ComandaError as e:
            click.echo(click.style(f'❌ {e.message}', fg='red'))
            return

        click.echo(click.style('\n✅ Restaurante creado exitosamente!', fg='green', bold=True))
        click.echo(f'   Restaurante: {slug} (ID {owner.tenant_id})')
        click.echo(f'   Dueño: {owner.email}')

    @app.cli.command('create-staff')
    @click.option('--restaurant', prompt=True, help='Restaurant slug')
    @click.option('--name', prompt=True, help='Staff member name')
    @click.option('--pin', prompt=True, hide_input=True, confirmation_prompt=True, help='4 to 8 digit PIN')
    @click.option('--role', default='Mesero', show_default=True, help='Role name')
    @click.option('--manager', is_flag=True, default=False, help='Role has manager rights')
    def create_staff_command(restaurant, name, pin, role, manager):
        """Add a staff member to a restaurant."""
        session = get_session()
        tenant = session.query(Tenant).filter_by(slug=restaurant.strip().lower()).first()
        if not tenant:
            click.echo(click.style(f'❌ No existe el restaurante: {restaurant}', fg='red'))
            return

        try:
            staff = create_staff(session, tenant.id, name, pin, role_name=role, is_manager=manager)
        except ComandaError as e:
            click.echo(click.style(f'❌ {e.message}', fg='red'))
            return

        click.echo(click.style(f'\n✅ Empleado creado: {staff.name} (ID {staff.id}, rol {role})', fg='green'))
