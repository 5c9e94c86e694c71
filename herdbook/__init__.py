import logging
import os

from flask import Flask
from flask_cors import CORS
from flask_sqlalchemy import SQLAlchemy

# Shared database extension, bound to the app inside create_app().
db = SQLAlchemy()


def _default_database_path():
    """
    Returns a writable path for the SQLite database file.
    On Windows this lives under %APPDATA%, elsewhere under the user's home directory.
    """
    app_data_path = os.environ.get('APPDATA')
    if app_data_path:
        data_folder = os.path.join(app_data_path, 'Herdbook')
    else:
        data_folder = os.path.join(os.path.expanduser("~"), '.Herdbook')

    os.makedirs(data_folder, exist_ok=True)
    return os.path.join(data_folder, 'database.db')


def create_app(test_config=None):
    """Application factory function."""
    app = Flask(__name__, instance_relative_config=False)
    CORS(app, resources={r"/api/*": {"origins": "*"}})

    app.config.from_mapping(
        SECRET_KEY='dev',
        SQLALCHEMY_TRACK_MODIFICATIONS=False,
        LOG_LEVEL='INFO',
        DAILY_TREND_DAYS=7,
        UPCOMING_DELIVERY_DAYS=90,
        DELIVERY_GRACE_DAYS=7,
        COMPARISON_MONTHS=6,
    )
    if test_config is not None:
        app.config.update(test_config)
    app.config.from_prefixed_env('HERDBOOK')

    # Only touch the filesystem when no database was configured explicitly.
    if not app.config.get('SQLALCHEMY_DATABASE_URI'):
        app.config['SQLALCHEMY_DATABASE_URI'] = f'sqlite:///{_default_database_path()}'

    logging.getLogger(__name__).setLevel(app.config['LOG_LEVEL'])

    db.init_app(app)

    with app.app_context():
        from .routes import api
        from .seed import seed_cli
        from .store import SqlRecordStore

        app.register_blueprint(api, url_prefix='/api')
        app.cli.add_command(seed_cli)

        # Creates the record_collection table backing the store.
        db.create_all()
        app.extensions['herdbook_store'] = SqlRecordStore(db.session)

        return app
