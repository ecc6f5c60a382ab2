import click
from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from config import config

db = SQLAlchemy()


def create_app(config_name='default'):
    """Application factory: creates and configures the Flask app."""
    app = Flask(__name__)
    app.config.from_object(config[config_name])

    # ── Logging ───────────────────────────────────────────────────
    from studio.utils.logging import setup_logging
    setup_logging(app)

    # ── Extensions ────────────────────────────────────────────────
    db.init_app(app)
    import studio.models  # noqa: F401  registers every model before first query

    # ── Blueprints ────────────────────────────────────────────────
    from studio.main.routes import main as main_blueprint
    app.register_blueprint(main_blueprint)

    from studio.auth.routes import auth as auth_blueprint
    app.register_blueprint(auth_blueprint, url_prefix='/auth')

    from studio.customers.routes import customers as customers_blueprint
    app.register_blueprint(customers_blueprint, url_prefix='/customers')

    from studio.orders.routes import orders as orders_blueprint
    app.register_blueprint(orders_blueprint, url_prefix='/orders')

    from studio.products.routes import products as products_blueprint
    app.register_blueprint(products_blueprint, url_prefix='/products')

    from studio.loyalty.routes import loyalty as loyalty_blueprint
    app.register_blueprint(loyalty_blueprint, url_prefix='/loyalty')

    from studio.dashboard.routes import dashboard as dashboard_blueprint
    app.register_blueprint(dashboard_blueprint, url_prefix='/dashboard')

    # ── Error Handlers ────────────────────────────────────────────
    @app.errorhandler(403)
    def forbidden(e):
        return jsonify({'success': False, 'message': 'Access denied.'}), 403

    @app.errorhandler(404)
    def not_found(e):
        return jsonify({'success': False, 'message': 'Not found.'}), 404

    @app.errorhandler(500)
    def internal_error(e):
        return jsonify({'success': False, 'message': 'Server error.'}), 500

    # ── CLI Commands ──────────────────────────────────────────────
    register_commands(app)

    # ── ProxyFix (HTTPS termination in front of gunicorn) ──
    from werkzeug.middleware.proxy_fix import ProxyFix
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_prefix=1)

    return app


def register_commands(app):
    """Register custom Flask CLI commands."""

    @app.cli.command('init-db')
    def init_db():
        """Create all database tables."""
        import studio.models  # noqa: F401  registers every model
        db.create_all()
        click.echo('✅  Database tables created.')

    @app.cli.command('seed-admin')
    @click.option('--name',     prompt='Full name',  help='Admin full name')
    @click.option('--username', prompt='Username',   help='Admin username')
    @click.option('--password', prompt=True, hide_input=True,
                  confirmation_prompt=True, help='Admin password')
    def seed_admin(name, username, password):
        """Create the initial admin user."""
        from studio.auth.models import User, RoleEnum

        if User.query.filter_by(username=username).first():
            click.echo(f'⚠️  User "{username}" already exists.')
            return

        admin = User(name=name, username=username, role=RoleEnum.admin)
        admin.set_password(password)
        db.session.add(admin)
        db.session.commit()
        click.echo(f'✅  Admin user "{username}" created successfully.')

    @app.cli.command('adjust-points')
    @click.argument('customer_id', type=int)
    @click.argument('delta', type=int)
    @click.option('--event', 'event_type', default='adjustment',
                  type=click.Choice(['adjustment', 'bonus']), help='History event type')
    @click.option('--note', default=None, help='Reason recorded in point history')
    def adjust_points(customer_id, delta, event_type, note):
        """Manually add (or remove) loyalty points for a customer."""
        from studio.loyalty.engine import build_engine

        result = build_engine().adjust_points(customer_id, delta, event_type=event_type, note=note)
        if not result.success:
            click.echo(f'❌  {result.message}')
            return
        click.echo(f'✅  {result.message}')

    @app.cli.command('recalc-levels')
    def recalc_levels():
        """Re-derive every customer's level from points (repairs drift)."""
        from studio.loyalty.engine import build_engine

        fixed = build_engine().reconcile_levels()
        if not fixed:
            click.echo('ℹ️   All customer levels already match their points.')
            return
        click.echo(f'{"Customer":<10} {"Old":<8} {"New":<8} {"Points"}')
        click.echo('─' * 36)
        for row in fixed:
            click.echo(f'{row.customer_id:<10} {row.old_level.value:<8} {row.new_level.value:<8} {row.points}')

    @app.cli.command('seed-demo')
    def seed_demo():
        """Populate database with demo data."""
        import random
        from decimal import Decimal
        from studio.auth.models import User, RoleEnum
        from studio.products.models import Product, generate_product_code
        from studio.customers.services import build_customer_service

        click.echo("🌱 Seeding demo data...")
        import studio.models  # noqa: F401
        db.create_all()

        if not User.query.filter_by(username='admin').first():
            u = User(name='Admin User', username='admin', role=RoleEnum.admin)
            u.set_password('demo123')
            db.session.add(u)

        if not User.query.filter_by(username='operator1').first():
            u = User(name='Sara Operator', username='operator1', role=RoleEnum.operator)
            u.set_password('123')
            db.session.add(u)

        db.session.commit()
        click.echo("✅ Users created (admin/demo123, operator1/123).")

        if Product.query.count() < 5:
            sizes = ['10x15', '13x18', '18x24', '20x30', '30x40', '40x60', '50x70']
            types = ['Glossy', 'Matte', 'Canvas', None]
            for size in sizes:
                p = Product(
                    product_code=generate_product_code(),
                    size=size,
                    type=random.choice(types),
                    price=Decimal(random.randint(5, 120) * 1000),
                    default_discount=Decimal('0'),
                )
                db.session.add(p)
            db.session.commit()
            click.echo("✅ Price list seeded.")

        service = build_customer_service()
        first = service.register_customer('Ali', 'Rezai', '09120000001')
        if first.success:
            service.register_customer('Maryam', 'Karimi', '09120000002',
                                      referrer_id=first.customer_id)
        click.echo("✅ Demo seed complete.")

    return app
