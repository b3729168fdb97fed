"""Acceso a la tabla ``citas``.

Todas las operaciones usan la sesión de Flask-SQLAlchemy del contexto actual.
Un error del motor se revierte y se eleva como ``StorageError``; la violación
del índice único de horario activo se eleva como ``ConflictError``.
"""
import logging
from datetime import date as date_type
from functools import wraps

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from citas import db
from citas.errors import ConflictError, NotFoundError, StorageError, ValidationError
from citas.models import (
    CANCELLED,
    CONFIRMED,
    EDITABLE_FIELDS,
    JSON_KEYS,
    REQUIRED_FIELDS,
    Appointment,
)

logger = logging.getLogger(__name__)


def guarded(func):
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except IntegrityError as exc:
            db.session.rollback()
            logger.warning("Horario ocupado al guardar la cita: %s", exc.orig)
            raise ConflictError() from exc
        except SQLAlchemyError as exc:
            db.session.rollback()
            logger.exception("Error de base de datos en %s", func.__name__)
            raise StorageError() from exc
    return wrapper


def _check_required(fields):
    missing = [JSON_KEYS[name] for name in REQUIRED_FIELDS if fields.get(name) in (None, "")]
    if missing:
        raise ValidationError("Faltan campos requeridos", campos=missing)


@guarded
def has_conflict(date, time, exclude_id=None):
    """True si ya hay una cita activa exactamente en esa fecha y hora."""
    query = Appointment.query.filter_by(date=date, time=time)\
        .filter(Appointment.status != CANCELLED)
    if exclude_id is not None:
        query = query.filter(Appointment.id != exclude_id)
    return query.first() is not None


@guarded
def create(**fields):
    _check_required(fields)
    cita = Appointment(
        **{name: fields.get(name) for name in EDITABLE_FIELDS},
        status=CONFIRMED,
        reminder_24h_sent=False,
        reminder_2h_sent=False,
        reminder_post_sent=False,
    )
    db.session.add(cita)
    db.session.commit()
    logger.info("Cita %s creada para %s %s", cita.id, cita.date, cita.time)
    return cita


@guarded
def get_all():
    return Appointment.query.order_by(Appointment.date, Appointment.time).all()


@guarded
def get_by_id(cita_id):
    cita = db.session.get(Appointment, cita_id)
    if cita is None:
        raise NotFoundError()
    return cita


@guarded
def get_by_date(date, include_cancelled=True):
    query = Appointment.query.filter_by(date=date)
    if not include_cancelled:
        query = query.filter(Appointment.status != CANCELLED)
    return query.order_by(Appointment.time).all()


@guarded
def get_pending(today=None):
    """Citas confirmadas de hoy en adelante."""
    today = today or date_type.today()
    return Appointment.query.filter(
        Appointment.status == CONFIRMED,
        Appointment.date >= today,
    ).order_by(Appointment.date, Appointment.time).all()


@guarded
def update(cita_id, **fields):
    """Reemplaza todos los campos editables de la cita."""
    cita = get_by_id(cita_id)
    _check_required(fields)
    for name in EDITABLE_FIELDS:
        setattr(cita, name, fields.get(name))
    cita.touch()
    db.session.commit()
    return cita


@guarded
def cancel(cita_id):
    cita = get_by_id(cita_id)
    cita.status = CANCELLED
    cita.touch()
    db.session.commit()
    return cita


@guarded
def delete(cita_id):
    """Borra la fila y devuelve sus datos tal como estaban."""
    cita = get_by_id(cita_id)
    data = cita.to_dict()
    db.session.delete(cita)
    db.session.commit()
    return data


@guarded
def delete_all():
    count = Appointment.query.delete()
    db.session.commit()
    return count
