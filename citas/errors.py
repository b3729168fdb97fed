import logging

from flask import Blueprint, jsonify
from werkzeug.exceptions import HTTPException

logger = logging.getLogger(__name__)

bp = Blueprint('errors', __name__)


class CitaError(Exception):
    """Error de dominio con su código HTTP y un código corto para el cliente."""

    status_code = 500
    code = "error"
    message = "Ha ocurrido un error interno"

    def __init__(self, message=None, **details):
        self.message = message or self.message
        self.details = details
        super().__init__(self.message)

    def to_dict(self):
        body = {"success": False, "message": self.message, "error": self.code}
        body.update(self.details)
        return body


class ValidationError(CitaError):
    status_code = 400
    code = "validation_error"
    message = "Datos inválidos"


class NotFoundError(CitaError):
    status_code = 404
    code = "not_found"
    message = "Cita no encontrada"


class ConflictError(CitaError):
    status_code = 409
    code = "conflict"
    message = "Ya existe una cita en ese horario"


class StorageError(CitaError):
    status_code = 500
    code = "storage_error"
    message = "Error al acceder a la base de datos"


class NotificationError(CitaError):
    """Fallo al entregar el webhook. Se registra y se descarta, nunca llega al cliente."""

    code = "notification_error"
    message = "Error al enviar el webhook"


HTTP_MESSAGES = {
    400: "Solicitud inválida",
    404: "Recurso no encontrado",
    405: "Método no permitido",
    500: "Ha ocurrido un error interno",
}


@bp.app_errorhandler(CitaError)
def handle_cita_error(e):
    if e.status_code >= 500:
        logger.error("%s: %s", e.code, e.message)
    return jsonify(e.to_dict()), e.status_code


@bp.app_errorhandler(HTTPException)
def handle_http_error(e):
    return jsonify({
        "success": False,
        "message": HTTP_MESSAGES.get(e.code, e.description),
        "error": e.name,
    }), e.code


# Manejo global de errores
@bp.app_errorhandler(Exception)
def handle_internal_error(e):
    logger.exception("Error no controlado")
    return jsonify({
        "success": False,
        "message": HTTP_MESSAGES[500],
        "error": "internal_error",
    }), 500
