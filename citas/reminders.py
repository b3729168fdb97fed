import logging

from flask import Blueprint, request

from citas import db, models, store
from citas.errors import ValidationError
from citas.models import Appointment
from citas.responses import ok

logger = logging.getLogger(__name__)

bp = Blueprint('recordatorios', __name__, url_prefix='/api/citas')

# tipo de recordatorio -> columna de la bandera
REMINDER_FLAGS = {
    '24h': 'reminder_24h_sent',
    '2h': 'reminder_2h_sent',
    'post': 'reminder_post_sent',
}
CLEARED_FLAGS = {column: False for column in REMINDER_FLAGS.values()}


def set_flag(cita_id, tipo):
    """Marca como enviado un solo recordatorio; las otras banderas no se tocan."""
    if not isinstance(tipo, str) or tipo not in REMINDER_FLAGS:
        raise ValidationError("Tipo de recordatorio inválido. Debe ser: 24h, 2h o post")
    return _save_flags(cita_id, {REMINDER_FLAGS[tipo]: True})


def reset_flags(cita_id):
    return _save_flags(cita_id, CLEARED_FLAGS)


@store.guarded
def _save_flags(cita_id, values):
    cita = store.get_by_id(cita_id)
    for column, value in values.items():
        setattr(cita, column, value)
    cita.touch()
    db.session.commit()
    return cita


@store.guarded
def reset_all_flags():
    """Pone las tres banderas en false en todas las citas y devuelve las afectadas."""
    count = Appointment.query.update(
        {**CLEARED_FLAGS, 'updated_at': models.utcnow()}, synchronize_session=False
    )
    db.session.commit()
    logger.info("Flags reseteados para %s citas", count)
    return store.get_all()


@bp.route("/<int:cita_id>/reset-flags", methods=["PATCH"])
def reset_flags_route(cita_id):
    cita = reset_flags(cita_id)
    return ok(cita.to_dict(), "Flags reseteados exitosamente")


@bp.route("/<int:cita_id>/marcar-recordatorio", methods=["PATCH"])
def mark_reminder(cita_id):
    data = request.get_json(silent=True) or {}
    tipo = data.get("tipo") if isinstance(data, dict) else None
    cita = set_flag(cita_id, tipo)
    return ok(cita.to_dict(), f"Recordatorio {tipo} marcado como enviado")


@bp.route("/reset-flags/all", methods=["PATCH"])
def reset_all_flags_route():
    citas = reset_all_flags()
    return ok([c.to_dict() for c in citas], f"Flags reseteados para {len(citas)} citas")
