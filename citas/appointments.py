import logging
from datetime import datetime, timedelta

from flask import Blueprint, request

from citas import store
from citas.errors import ConflictError, ValidationError
from citas.models import JSON_KEYS
from citas.responses import ok
from citas.webhook import CITA_CANCELADA, CITA_CREADA, CITA_ELIMINADA, notifier

logger = logging.getLogger(__name__)

bp = Blueprint('appointments', __name__, url_prefix='/api/citas')

# tipoFecha -> desplazamiento respecto de ahora (citas de demostración)
DATE_OFFSETS = {
    '24h': timedelta(hours=24),
    '2h': timedelta(hours=2),
    '1h_pasado': timedelta(hours=-1),
}
TRUE_VALUES = ("1", "true", "yes", "si", "sí")


def parse_date(value):
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except (TypeError, ValueError):
        raise ValidationError("Formato de fecha inválido, use YYYY-MM-DD")


def parse_time(value):
    for fmt in ("%H:%M:%S", "%H:%M"):
        try:
            return datetime.strptime(value, fmt).time()
        except (TypeError, ValueError):
            continue
    raise ValidationError("Formato de hora inválido, use HH:MM o HH:MM:SS")


def _request_data():
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("El cuerpo debe ser un objeto JSON")
    return data


def _fields_from(data):
    """Traduce las claves del JSON a atributos del modelo."""
    invalid = [key for key in JSON_KEYS.values()
               if data.get(key) is not None and not isinstance(data[key], str)]
    if invalid:
        raise ValidationError("Los campos deben ser texto", campos=invalid)
    return {name: data.get(key) for name, key in JSON_KEYS.items()}


def _missing(data, keys):
    return [key for key in keys if data.get(key) in (None, "")]


def _slot_from(data, now=None):
    """Fecha y hora de la cita: explícitas (fecha, hora) o relativas (tipoFecha)."""
    if not _missing(data, ("fecha", "hora")):
        return parse_date(data["fecha"]), parse_time(data["hora"])
    tipo_fecha = data.get("tipoFecha")
    if not isinstance(tipo_fecha, str) or tipo_fecha not in DATE_OFFSETS:
        raise ValidationError("Tipo de fecha inválido. Debe ser: 24h, 2h o 1h_pasado")
    now = (now or datetime.now()).replace(second=0, microsecond=0)
    scheduled = now + DATE_OFFSETS[tipo_fecha]
    return scheduled.date(), scheduled.time()


def create_appointment(data, now=None):
    missing = _missing(data, ("nombre", "email", "telefono"))
    if _missing(data, ("fecha", "hora")) and not data.get("tipoFecha"):
        missing.extend(_missing(data, ("fecha", "hora")))
    if missing:
        raise ValidationError("Faltan campos requeridos", campos=missing)

    fields = _fields_from(data)
    fields["date"], fields["time"] = _slot_from(data, now)

    # Verificar solapamientos (otra cita activa en misma fecha y hora)
    if store.has_conflict(fields["date"], fields["time"]):
        raise ConflictError()

    cita = store.create(**fields)
    notifier.send(CITA_CREADA, cita.to_dict())
    return cita


def update_appointment(cita_id, data):
    cita = store.get_by_id(cita_id)
    missing = _missing(data, ("nombre", "email", "telefono", "fecha", "hora"))
    if missing:
        raise ValidationError("Faltan campos requeridos", campos=missing)

    fields = _fields_from(data)
    fields["date"] = parse_date(data["fecha"])
    fields["time"] = parse_time(data["hora"])

    # Reprogramar pasa por la misma verificación que crear
    moved = (fields["date"], fields["time"]) != (cita.date, cita.time)
    if moved and cita.is_active and store.has_conflict(fields["date"], fields["time"], exclude_id=cita.id):
        raise ConflictError("Ya existe otra cita en ese horario")

    return store.update(cita_id, **fields)


def cancel_or_delete_appointment(cita_id, physical=False):
    """Cancela (o borra físicamente) la cita y devuelve (datos, mensaje)."""
    if physical:
        data = store.delete(cita_id)
        notifier.send(CITA_ELIMINADA, data)
        return data, "Cita eliminada exitosamente"
    data = store.cancel(cita_id).to_dict()
    notifier.send(CITA_CANCELADA, data)
    return data, "Cita cancelada exitosamente"


def delete_all_appointments():
    count = store.delete_all()
    logger.warning("%s citas eliminadas", count)
    return count


@bp.route("", methods=["GET"])
def list_appointments():
    return ok([c.to_dict() for c in store.get_all()])


@bp.route("", methods=["POST"])
def create_appointment_route():
    cita = create_appointment(_request_data())
    return ok(cita.to_dict(), "Cita creada exitosamente", status=201)


@bp.route("", methods=["DELETE"])
def delete_all_route():
    count = delete_all_appointments()
    return ok({"eliminadas": count}, f"{count} citas eliminadas exitosamente")


@bp.route("/fecha/<fecha>", methods=["GET"])
def list_by_date(fecha):
    only_active = request.args.get("activas", "").lower() in TRUE_VALUES
    citas = store.get_by_date(parse_date(fecha), include_cancelled=not only_active)
    return ok([c.to_dict() for c in citas])


@bp.route("/pendientes", methods=["GET"])
def list_pending():
    return ok([c.to_dict() for c in store.get_pending()])


@bp.route("/<int:cita_id>", methods=["GET"])
def get_appointment(cita_id):
    return ok(store.get_by_id(cita_id).to_dict())


@bp.route("/<int:cita_id>", methods=["PUT"])
def update_appointment_route(cita_id):
    cita = update_appointment(cita_id, _request_data())
    return ok(cita.to_dict(), "Cita actualizada")


@bp.route("/<int:cita_id>", methods=["DELETE"])
def cancel_appointment_route(cita_id):
    physical = request.args.get("fisico", "").lower() in TRUE_VALUES
    data, message = cancel_or_delete_appointment(cita_id, physical=physical)
    return ok(data, message)
