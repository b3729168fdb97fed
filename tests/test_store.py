from datetime import date, datetime, time, timedelta, timezone

import pytest

from citas import store
from citas.errors import ConflictError, NotFoundError, ValidationError
from citas.models import CANCELLED, CONFIRMED


def fields(**overrides):
    data = {
        "first_name": "Luis",
        "last_name": "Rojas",
        "email": "luis@example.com",
        "phone": "+51911222333",
        "date": date(2025, 6, 1),
        "time": time(10, 0),
        "reason": "Control",
        "notes": None,
    }
    data.update(overrides)
    return data


def test_create_defaults(ctx):
    cita = store.create(**fields())

    assert cita.id is not None
    assert cita.status == CONFIRMED
    assert cita.reminder_24h_sent is False
    assert cita.reminder_2h_sent is False
    assert cita.reminder_post_sent is False
    assert store.get_by_id(cita.id).email == "luis@example.com"


@pytest.mark.parametrize("missing", ["first_name", "email", "phone", "date", "time"])
def test_create_requires_fields(ctx, missing):
    with pytest.raises(ValidationError) as exc:
        store.create(**fields(**{missing: None}))
    assert exc.value.status_code == 400
    assert store.get_all() == []


def test_last_name_is_optional(ctx):
    cita = store.create(**fields(last_name=None))
    assert cita.last_name is None


def test_get_by_id_not_found(ctx):
    with pytest.raises(NotFoundError):
        store.get_by_id(999)


def test_get_all_orders_by_date_then_time(ctx):
    store.create(**fields(date=date(2025, 6, 2), time=time(9, 0)))
    store.create(**fields(date=date(2025, 6, 1), time=time(15, 0)))
    store.create(**fields(date=date(2025, 6, 1), time=time(8, 30)))

    slots = [(c.date, c.time) for c in store.get_all()]

    assert slots == [
        (date(2025, 6, 1), time(8, 30)),
        (date(2025, 6, 1), time(15, 0)),
        (date(2025, 6, 2), time(9, 0)),
    ]


def test_unique_index_rejects_second_active_slot(ctx):
    # Sin la verificación previa, el índice parcial es quien detecta el choque
    store.create(**fields())
    with pytest.raises(ConflictError):
        store.create(**fields(email="otro@example.com"))
    assert len(store.get_all()) == 1


def test_cancelled_slot_can_be_reused(ctx):
    first = store.create(**fields())
    store.cancel(first.id)

    second = store.create(**fields(email="otro@example.com"))

    assert second.id != first.id
    assert store.get_by_id(first.id).status == CANCELLED


def test_has_conflict_ignores_cancelled_and_excluded(ctx):
    cita = store.create(**fields())

    assert store.has_conflict(date(2025, 6, 1), time(10, 0)) is True
    assert store.has_conflict(date(2025, 6, 1), time(10, 30)) is False
    assert store.has_conflict(date(2025, 6, 1), time(10, 0), exclude_id=cita.id) is False

    store.cancel(cita.id)
    assert store.has_conflict(date(2025, 6, 1), time(10, 0)) is False


def test_get_by_date_with_and_without_cancelled(ctx):
    a = store.create(**fields(time=time(11, 0)))
    store.create(**fields(time=time(9, 0)))
    store.create(**fields(date=date(2025, 6, 2)))
    store.cancel(a.id)

    every = store.get_by_date(date(2025, 6, 1))
    active = store.get_by_date(date(2025, 6, 1), include_cancelled=False)

    assert [c.time for c in every] == [time(9, 0), time(11, 0)]
    assert [c.time for c in active] == [time(9, 0)]


def test_get_pending(ctx):
    today = date(2025, 6, 10)
    store.create(**fields(date=today - timedelta(days=1)))
    hoy = store.create(**fields(date=today, time=time(16, 0)))
    manana = store.create(**fields(date=today + timedelta(days=1)))
    cancelada = store.create(**fields(date=today + timedelta(days=2)))
    store.cancel(cancelada.id)

    pending = store.get_pending(today=today)

    assert [c.id for c in pending] == [hoy.id, manana.id]


def test_update_replaces_fields_and_touches(ctx, monkeypatch):
    cita = store.create(**fields())
    stamp = datetime(2030, 1, 1, 12, 0, tzinfo=timezone.utc)
    monkeypatch.setattr("citas.models.utcnow", lambda: stamp)

    updated = store.update(cita.id, **fields(first_name="Lucía", reason=None, time=time(12, 0)))

    assert updated.first_name == "Lucía"
    assert updated.reason is None
    assert updated.time == time(12, 0)
    assert updated.updated_at.replace(tzinfo=None) == stamp.replace(tzinfo=None)


def test_update_requires_all_fields(ctx):
    cita = store.create(**fields())
    with pytest.raises(ValidationError):
        store.update(cita.id, **fields(phone=""))
    assert store.get_by_id(cita.id).phone == "+51911222333"


def test_update_not_found(ctx):
    with pytest.raises(NotFoundError):
        store.update(42, **fields())


def test_cancel_is_terminal_and_idempotent(ctx):
    cita = store.create(**fields())

    store.cancel(cita.id)
    again = store.cancel(cita.id)

    assert again.status == CANCELLED


def test_cancel_touches_updated_at(ctx, monkeypatch):
    cita = store.create(**fields())
    stamp = datetime(2030, 1, 1, 12, 0, tzinfo=timezone.utc)
    monkeypatch.setattr("citas.models.utcnow", lambda: stamp)

    cancelled = store.cancel(cita.id)

    assert cancelled.updated_at.replace(tzinfo=None) == stamp.replace(tzinfo=None)
    assert cancelled.created_at.replace(tzinfo=None) != stamp.replace(tzinfo=None)


def test_cancel_not_found(ctx):
    with pytest.raises(NotFoundError):
        store.cancel(7)


def test_delete_returns_data_and_ids_are_not_reused(ctx):
    first = store.create(**fields())
    first_id = first.id

    data = store.delete(first_id)

    assert data["id"] == first_id
    assert data["nombre"] == "Luis"
    with pytest.raises(NotFoundError):
        store.get_by_id(first_id)

    second = store.create(**fields())
    assert second.id > first_id


def test_delete_not_found(ctx):
    with pytest.raises(NotFoundError):
        store.delete(3)


def test_delete_all(ctx):
    store.create(**fields(time=time(9, 0)))
    store.create(**fields(time=time(9, 30)))

    assert store.delete_all() == 2
    assert store.get_all() == []
    assert store.delete_all() == 0
