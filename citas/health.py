import logging

from flask import Blueprint, current_app, jsonify
from sqlalchemy import inspect, text
from sqlalchemy.exc import SQLAlchemyError

from citas import db
from citas.errors import StorageError
from citas.models import Appointment
from citas.webhook import EVENTOS

logger = logging.getLogger(__name__)

bp = Blueprint('health', __name__)

ENDPOINTS = {
    'GET /health': 'Estado del servicio',
    'GET /api/test-connection': 'Probar conexión a la base de datos',
    'GET /api/diagnostico': 'Verificar estructura de la base de datos',
    'GET /api/citas': 'Obtener todas las citas',
    'GET /api/citas/<id>': 'Obtener una cita',
    'GET /api/citas/fecha/<YYYY-MM-DD>': 'Citas de un día (?activas=true excluye canceladas)',
    'GET /api/citas/pendientes': 'Citas confirmadas de hoy en adelante',
    'POST /api/citas': 'Crear una cita (envía webhook a n8n)',
    'PUT /api/citas/<id>': 'Actualizar una cita',
    'DELETE /api/citas/<id>': 'Cancelar una cita, ?fisico=true la elimina (envía webhook a n8n)',
    'DELETE /api/citas': 'Eliminar todas las citas',
    'PATCH /api/citas/<id>/reset-flags': 'Resetear flags de una cita',
    'PATCH /api/citas/<id>/marcar-recordatorio': 'Marcar recordatorio como enviado',
    'PATCH /api/citas/reset-flags/all': 'Resetear todos los flags',
}


@bp.route("/", methods=["GET"])
def index():
    return jsonify({
        "message": "API de citas con recordatorios",
        "status": "running",
        "webhookConfigured": bool(current_app.config.get("N8N_WEBHOOK_URL")),
        "endpoints": ENDPOINTS,
        "webhooks": {
            "eventos": list(EVENTOS),
            "configuracion": "Agregar N8N_WEBHOOK_URL en el archivo .env",
        },
    })


@bp.route("/health", methods=["GET"])
def health():
    return jsonify({"status": "ok"}), 200


def check_connection():
    """Ida y vuelta a la base; devuelve la hora del servidor o eleva StorageError."""
    try:
        return db.session.execute(text("SELECT CURRENT_TIMESTAMP")).scalar()
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.error("Error de conexión: %s", exc)
        raise StorageError("Error al conectar con la base de datos") from exc


def log_connection_status():
    """Prueba la conexión al arrancar y registra el resultado."""
    logger.info("Probando conexión a la base de datos...")
    try:
        check_connection()
    except StorageError:
        logger.error("No se pudo conectar con la base de datos")
        return False
    logger.info("Conexión a la base de datos exitosa")
    return True


@bp.route("/api/test-connection", methods=["GET"])
def test_connection():
    now = check_connection()
    return jsonify({
        "success": True,
        "message": "Conexión exitosa a la base de datos",
        "timestamp": str(now),
    })


@bp.route("/api/diagnostico", methods=["GET"])
def diagnostico():
    table = Appointment.__tablename__
    try:
        inspector = inspect(db.engine)
        exists = inspector.has_table(table)
        columns = inspector.get_columns(table) if exists else []
    except SQLAlchemyError as exc:
        logger.error("Error en diagnóstico: %s", exc)
        raise StorageError("Error en diagnóstico") from exc
    return jsonify({
        "success": True,
        "diagnostico": {
            "tabla": table,
            "tablaExiste": exists,
            "columnas": [
                {
                    "column_name": col["name"],
                    "data_type": str(col["type"]),
                    "is_nullable": col["nullable"],
                }
                for col in columns
            ],
        },
    })
