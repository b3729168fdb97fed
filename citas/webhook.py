"""Notificación de eventos de citas hacia n8n.

El envío nunca bloquea ni hace fallar la respuesta de la API: los eventos se
encolan y un hilo de fondo los entrega. Si el webhook falla se registra el
error y el evento se descarta.

Cada app guarda su propia configuración en ``app.extensions["notifier"]``;
la cola y el hilo de entrega son compartidos.
"""
import logging
import queue
import threading
import time
from datetime import datetime, timezone

import requests
from flask import current_app
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from citas.errors import NotificationError

logger = logging.getLogger(__name__)

CITA_CREADA = "cita_creada"
CITA_CANCELADA = "cita_cancelada"
CITA_ELIMINADA = "cita_eliminada"
EVENTOS = (CITA_CREADA, CITA_CANCELADA, CITA_ELIMINADA)

RETRY_STATUSES = (429, 500, 502, 503, 504)


def build_payload(evento, datos):
    return {
        "evento": evento,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "datos": datos,
    }


def create_http_session(retries=0, backoff=1.0):
    """Sesión HTTP con reintentos de urllib3 para el POST al webhook."""
    session = requests.Session()
    retry_strategy = Retry(
        total=retries,
        backoff_factor=backoff,
        status_forcelist=RETRY_STATUSES,
        allowed_methods=["POST"],
        raise_on_status=False,
    )
    adapter = HTTPAdapter(max_retries=retry_strategy)
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session


class WebhookConfig:
    """Configuración del webhook de una app."""

    def __init__(self, url=None, timeout=5.0, retries=0, backoff=1.0, async_mode=True):
        self.url = url or None
        self.timeout = timeout
        self.async_mode = async_mode
        self.session = create_http_session(retries, backoff)

    @classmethod
    def from_app(cls, app):
        return cls(
            url=app.config.get("N8N_WEBHOOK_URL"),
            timeout=app.config.get("NOTIFY_TIMEOUT", 5.0),
            retries=app.config.get("NOTIFY_RETRIES", 0),
            backoff=app.config.get("NOTIFY_BACKOFF", 1.0),
            async_mode=app.config.get("NOTIFY_ASYNC", True),
        )

    @property
    def enabled(self):
        return bool(self.url)


class NotificationDispatcher:

    def __init__(self, app=None):
        self._queue = queue.Queue()
        self._worker = None
        self._lock = threading.Lock()
        if app is not None:
            self.init_app(app)

    def init_app(self, app):
        config = WebhookConfig.from_app(app)
        app.extensions["notifier"] = config
        if not config.enabled:
            app.logger.warning("N8N_WEBHOOK_URL no configurado, los webhooks están deshabilitados")

    def send(self, evento, datos, config=None):
        """Encola el evento. Devuelve False si el webhook está deshabilitado."""
        config = config or current_app.extensions["notifier"]
        if not config.enabled:
            logger.info("Webhook '%s' no enviado: N8N_WEBHOOK_URL no configurado", evento)
            return False
        payload = build_payload(evento, datos)
        if not config.async_mode:
            self._deliver_safely(config, payload)
            return True
        self._ensure_worker()
        self._queue.put((config, payload))
        return True

    def deliver(self, config, payload):
        """POST al webhook; eleva NotificationError si no se pudo entregar."""
        logger.info("Enviando webhook a n8n: %s", payload["evento"])
        try:
            response = config.session.post(config.url, json=payload, timeout=config.timeout)
        except requests.RequestException as exc:
            raise NotificationError(f"Error al enviar webhook a n8n: {exc}") from exc
        if not response.ok:
            raise NotificationError(
                f"Error al enviar webhook: {response.status_code} {response.reason}"
            )
        logger.info("Webhook enviado exitosamente a n8n")
        return response.status_code

    def flush(self, timeout=None):
        """Espera a que se vacíe la cola. Devuelve False si se agotó el tiempo."""
        deadline = None if timeout is None else time.monotonic() + timeout
        while self._queue.unfinished_tasks:
            if deadline is not None and time.monotonic() >= deadline:
                return False
            time.sleep(0.01)
        return True

    def _deliver_safely(self, config, payload):
        try:
            self.deliver(config, payload)
        except NotificationError as exc:
            logger.error("Webhook '%s' descartado: %s", payload["evento"], exc)

    def _ensure_worker(self):
        with self._lock:
            if self._worker is None or not self._worker.is_alive():
                self._worker = threading.Thread(target=self._run, name="n8n-webhook", daemon=True)
                self._worker.start()

    def _run(self):
        while True:
            config, payload = self._queue.get()
            try:
                self._deliver_safely(config, payload)
            except Exception:
                logger.exception("Error inesperado en el hilo de webhooks")
            finally:
                self._queue.task_done()


notifier = NotificationDispatcher()
