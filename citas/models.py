from datetime import datetime, timezone

from sqlalchemy import text

from citas import db

CONFIRMED = 'confirmed'
CANCELLED = 'cancelled'
STATUSES = (CONFIRMED, CANCELLED)
PARTIAL_INDEX_DIALECTS = ('sqlite', 'postgresql')

# Atributo del modelo -> clave en el JSON de la API
JSON_KEYS = {
    'first_name': 'nombre',
    'last_name': 'apellido',
    'email': 'email',
    'phone': 'telefono',
    'date': 'fecha',
    'time': 'hora',
    'reason': 'motivo',
    'notes': 'notas',
}
REQUIRED_FIELDS = ('first_name', 'email', 'phone', 'date', 'time')
EDITABLE_FIELDS = tuple(JSON_KEYS)


def utcnow():
    return datetime.now(timezone.utc)


class Appointment(db.Model):
    __tablename__ = 'citas'
    __table_args__ = (
        # Un solo turno activo por fecha y hora; las canceladas liberan el horario.
        # Solo en motores con índices parciales; en el resto queda la verificación previa.
        db.Index(
            'uq_citas_slot_activa', 'date', 'time',
            unique=True,
            sqlite_where=text("status != 'cancelled'"),
            postgresql_where=text("status != 'cancelled'"),
        ).ddl_if(dialect=PARTIAL_INDEX_DIALECTS),
        {'sqlite_autoincrement': True},
    )

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    first_name = db.Column(db.String(100), nullable=False)
    last_name = db.Column(db.String(100), nullable=True)
    email = db.Column(db.String(120), nullable=False)
    phone = db.Column(db.String(30), nullable=False)
    date = db.Column(db.Date, nullable=False)
    time = db.Column(db.Time, nullable=False)
    reason = db.Column(db.String(255), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    status = db.Column(db.String(20), nullable=False, default=CONFIRMED)  # confirmed, cancelled
    reminder_24h_sent = db.Column(db.Boolean, nullable=False, default=False)
    reminder_2h_sent = db.Column(db.Boolean, nullable=False, default=False)
    reminder_post_sent = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    @property
    def is_active(self):
        return self.status != CANCELLED

    def touch(self):
        self.updated_at = utcnow()

    def to_dict(self):
        return {
            "id": self.id,
            "nombre": self.first_name,
            "apellido": self.last_name,
            "email": self.email,
            "telefono": self.phone,
            "fecha": self.date.isoformat() if self.date else None,
            "hora": self.time.strftime("%H:%M:%S") if self.time else None,
            "motivo": self.reason,
            "notas": self.notes,
            "estado": self.status,
            "recordatorio_24h_enviado": self.reminder_24h_sent,
            "recordatorio_2h_enviado": self.reminder_2h_sent,
            "recordatorio_post_enviado": self.reminder_post_sent,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<Appointment {self.id} - {self.first_name} on {self.date} at {self.time} ({self.status})>"
