# civicfix/__init__.py
from flask import Flask, current_app
from flask_migrate import Migrate

from .config import Config

migrate = Migrate()


def get_repos():
    """The repository bundle of the running app."""
    return current_app.extensions['civicfix.repositories']


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)
    app.logger.setLevel(app.config['LOG_LEVEL'])

    # --- Initialize Extensions ---
    from .models import db
    from .auth import login_manager
    from .repositories import Repositories
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    app.extensions['civicfix.repositories'] = Repositories()

    from .errors import register_error_handlers
    register_error_handlers(app)

    # Import and register the blueprints
    from .routes import main as main_blueprint
    from .auth_routes import auth as auth_blueprint
    from .issue_routes import issues as issues_blueprint
    from .worker_routes import workers as workers_blueprint
    from .payment_routes import payments as payments_blueprint
    from .review_routes import reviews as reviews_blueprint
    from .user_routes import users as users_blueprint
    app.register_blueprint(main_blueprint)
    app.register_blueprint(auth_blueprint, url_prefix='/auth')
    app.register_blueprint(issues_blueprint, url_prefix='/issues')
    app.register_blueprint(workers_blueprint, url_prefix='/workers')
    app.register_blueprint(payments_blueprint, url_prefix='/payments')
    app.register_blueprint(reviews_blueprint, url_prefix='/reviews')
    app.register_blueprint(users_blueprint, url_prefix='/users')

    from .cli import register_commands
    register_commands(app)

    return app
