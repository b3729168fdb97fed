import logging
import os

import click
from dotenv import load_dotenv
from flask import Flask
from flask_cors import CORS
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy
from sqlalchemy.engine import URL, make_url

load_dotenv()

db = SQLAlchemy()
migrate = Migrate()
cors = CORS()

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def _env_flag(name, default=False):
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "si", "sí", "on")


def _database_uri():
    """DATABASE_URL si existe; si no, PostgreSQL armado con las variables DB_*."""
    uri = os.getenv("DATABASE_URL")
    if uri:
        return uri
    return URL.create(
        "postgresql+psycopg2",
        username=os.getenv("DB_USER", "postgres"),
        password=os.getenv("DB_PASSWORD"),
        host=os.getenv("DB_HOST", "localhost"),
        port=int(os.getenv("DB_PORT", "5432")),
        database=os.getenv("DB_NAME", "citas"),
    )


def _engine_options(uri):
    options = {"pool_pre_ping": True}
    if make_url(uri).get_backend_name() == "postgresql":
        # Timeout de conexión de 5 segundos para servidores remotos
        options["connect_args"] = {"connect_timeout": 5}
    return options


def _log_database_config(app):
    url = make_url(app.config["SQLALCHEMY_DATABASE_URI"])
    app.logger.info("Configuración de la base de datos:")
    app.logger.info("  Motor: %s", url.get_backend_name())
    app.logger.info("  Host: %s", url.host)
    app.logger.info("  Puerto: %s", url.port)
    app.logger.info("  Base de datos: %s", url.database)
    app.logger.info("  Usuario: %s", url.username)
    app.logger.info("  Password: %s", "configurado" if url.password else "no configurado")


def create_app(test_config=None):
    app = Flask(__name__)

    #Configuración
    app.config['SQLALCHEMY_DATABASE_URI'] = _database_uri()
    app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False
    app.config['SECRET_KEY'] = os.getenv("SECRET_KEY") or os.urandom(32)
    app.config['SESSION_COOKIE_HTTPONLY'] = True
    app.config['SESSION_COOKIE_SAMESITE'] = 'Lax'
    app.config['DEBUG'] = False
    app.config['PORT'] = int(os.getenv("PORT", "3000"))
    app.config['LOG_LEVEL'] = os.getenv("LOG_LEVEL", "INFO")

    # Webhook hacia n8n
    app.config['N8N_WEBHOOK_URL'] = os.getenv("N8N_WEBHOOK_URL")
    app.config['NOTIFY_TIMEOUT'] = float(os.getenv("NOTIFY_TIMEOUT", "5"))
    app.config['NOTIFY_RETRIES'] = int(os.getenv("NOTIFY_RETRIES", "0"))
    app.config['NOTIFY_BACKOFF'] = float(os.getenv("NOTIFY_BACKOFF", "1"))
    app.config['NOTIFY_ASYNC'] = _env_flag("NOTIFY_ASYNC", True)

    if test_config:
        app.config.update(test_config)
    app.config.setdefault(
        'SQLALCHEMY_ENGINE_OPTIONS', _engine_options(app.config['SQLALCHEMY_DATABASE_URI'])
    )

    logging.basicConfig(level=app.config['LOG_LEVEL'], format=LOG_FORMAT)
    app.logger.setLevel(app.config['LOG_LEVEL'])
    _log_database_config(app)

    #Inicializar extensiones
    from citas.webhook import notifier

    db.init_app(app)
    migrate.init_app(app, db)
    cors.init_app(app, resources={r"/api/*": {"origins": "*"}})
    notifier.init_app(app)

    #Registrar blueprints
    from citas.appointments import bp as appointments_bp
    from citas.errors import bp as errors_bp
    from citas.health import bp as health_bp
    from citas.reminders import bp as reminders_bp

    app.register_blueprint(errors_bp)
    app.register_blueprint(health_bp)
    app.register_blueprint(reminders_bp)
    app.register_blueprint(appointments_bp)

    @app.cli.command("init-db")
    def init_db_command():
        """Crea las tablas si no existen."""
        db.create_all()
        click.echo("Tablas creadas.")

    return app
