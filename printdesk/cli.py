import click
from flask.cli import with_appcontext

from printdesk.dates import resolve_zone
from printdesk.errors import ValidationError
from printdesk.extensions import db
from printdesk.lifecycle.forms import parse_choice
from printdesk.models import Organization, Role, SubscriptionPlan, User

DEMO_PASSWORD = 'password123'


def _ensure_user(organization, name, email, role):
    user = User.query.filter_by(email=email).first()
    if not user:
        user = User(name=name, email=email, role=role, organization=organization)
        user.set_password(DEMO_PASSWORD)
        db.session.add(user)
    return user


@click.command('init-db')
@with_appcontext
def init_db():
    """Create all database tables"""
    db.create_all()
    click.echo('Database tables created.')


@click.command('seed-data')
@with_appcontext
def seed_data():
    """Seed database with a demo organization and one user per role"""
    org = Organization.query.filter_by(name='Demo School').first()
    if not org:
        org = Organization(
            name='Demo School',
            admin_email='admin@demo.school',
            subscription_plan=SubscriptionPlan.PROFESSIONAL,
            timezone='Asia/Kolkata'
        )
        db.session.add(org)
        db.session.flush()

    users = [
        _ensure_user(org, 'Demo Admin', 'admin@demo.school', Role.ORG_ADMIN),
        _ensure_user(org, 'Demo Operator', 'operator@demo.school', Role.PRINT_OPERATOR),
        _ensure_user(org, 'Demo Requester', 'staff@demo.school', Role.REQUESTER),
    ]

    db.session.commit()

    click.echo(f'Created organization: {org.name} (ID: {org.id})')
    for user in users:
        click.echo(f'Created user: {user.email} [{user.role.value}] (password: {DEMO_PASSWORD})')
    click.echo('Seed data created successfully!')


@click.command('create-org')
@click.argument('name')
@click.option('--admin-email', required=True, help='Email of the first admin')
@click.option('--admin-name', default='Administrator', show_default=True)
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
@click.option('--plan', default='STARTER', show_default=True, help='Subscription plan')
@click.option('--timezone', 'tz_name', default=None, help='IANA zone for due dates')
@with_appcontext
def create_org(name, admin_email, admin_name, password, plan, tz_name):
    """Create an organization together with its first admin"""
    email = admin_email.strip().lower()
    if User.query.filter_by(email=email).first():
        raise click.ClickException(f'Email already registered: {email}')

    try:
        subscription_plan = parse_choice(SubscriptionPlan, plan, 'plan')
        if tz_name:
            resolve_zone(tz_name)
    except ValidationError as e:
        raise click.ClickException(e.message) from e

    org = Organization(
        name=name,
        admin_email=email,
        subscription_plan=subscription_plan,
        timezone=tz_name
    )
    admin = User(name=admin_name, email=email, role=Role.ORG_ADMIN, organization=org)
    admin.set_password(password)
    db.session.add_all([org, admin])
    db.session.commit()

    click.echo(f'Created organization: {org.name} (ID: {org.id}) with admin {email}')


def init_app(app):
    """Register CLI commands"""
    app.cli.add_command(init_db)
    app.cli.add_command(seed_data)
    app.cli.add_command(create_org)
