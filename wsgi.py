from studio import create_app, db
import os

config_name = os.environ.get('FLASK_ENV', 'production')
app = create_app(config_name)

# ── Schema bootstrap (hosts without shell access) ──
# Creates missing tables on startup; existing tables are left untouched
with app.app_context():
    try:
        db.create_all()
    except Exception as e:
        app.logger.error(f"⚠️ Startup schema check failed: {e}")
        raise

if __name__ == "__main__":
    app.run()
