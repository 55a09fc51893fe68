"""
External alert delivery.

ExternalNotifier sends one alert to every configured channel (e-mail,
WhatsApp webhook). DispatchQueue runs deliveries on a background thread
pool after the database transaction committed; delivery failures are only
ever visible in the logs.
"""
import smtplib
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from email.message import EmailMessage
from typing import Iterable, List, Optional

import httpx
import structlog

from ..config import Settings


logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class AlertPayload:
    type: str
    campus_id: str
    entity_id: str
    message: str


class ExternalNotifier:
    """Best-effort fan-out of one alert to e-mail and WhatsApp."""

    def __init__(self, settings: Settings, http_client_factory=None, smtp_factory=None):
        self.settings = settings
        self._http_client_factory = http_client_factory or (lambda: httpx.Client(timeout=30.0))
        self._smtp_factory = smtp_factory or smtplib.SMTP

    def dispatch(self, type: str, campus_id: str, entity_id: str, message: str) -> None:
        payload = AlertPayload(type=str(type), campus_id=str(campus_id), entity_id=str(entity_id), message=message)
        try:
            self.send_email(payload)
        except Exception as e:
            logger.error("email_notification_failed", error=str(e), type=payload.type, entity_id=payload.entity_id)
        try:
            self.send_whatsapp(payload)
        except Exception as e:
            logger.error("whatsapp_notification_failed", error=str(e), type=payload.type, entity_id=payload.entity_id)

    def send_email(self, payload: AlertPayload) -> None:
        s = self.settings
        if not s.email_alerts_enabled:
            return
        msg = EmailMessage()
        msg["Subject"] = f"[{payload.type}] Campus {payload.campus_id} - {payload.entity_id}"
        msg["From"] = s.mail_from
        msg["To"] = ", ".join(s.alert_email_recipients)
        msg.set_content(payload.message)
        with self._smtp_factory(s.smtp_host, s.smtp_port) as smtp:
            if s.smtp_tls:
                smtp.starttls()
            if s.smtp_username and s.smtp_password:
                smtp.login(s.smtp_username, s.smtp_password)
            smtp.send_message(msg)

    def send_whatsapp(self, payload: AlertPayload) -> None:
        s = self.settings
        if not s.whatsapp_alerts_enabled:
            return
        with self._http_client_factory() as client:
            response = client.post(
                s.whatsapp_webhook_url,
                json={
                    "recipients": s.whatsapp_recipients,
                    "type": payload.type,
                    "campusId": payload.campus_id,
                    "entityId": payload.entity_id,
                    "message": payload.message,
                },
            )
            if response.status_code < 200 or response.status_code >= 300:
                raise RuntimeError(f"WhatsApp webhook returned {response.status_code}")


class DispatchQueue:
    """
    Deferred, fire-and-forget execution of notifier calls.

    submit() returns immediately; drain() blocks until every job submitted so
    far has finished, which is what tests and shutdown use.
    """

    def __init__(self, notifier: ExternalNotifier, max_workers: int = 4):
        self.notifier = notifier
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="alert-dispatch")
        self._pending: List[Future] = []
        self._lock = threading.Lock()

    def submit(self, payloads: Iterable[AlertPayload]) -> int:
        count = 0
        for payload in payloads:
            future = self._executor.submit(self._run, payload)
            with self._lock:
                self._pending.append(future)
            count += 1
        return count

    def _run(self, payload: AlertPayload) -> None:
        try:
            self.notifier.dispatch(payload.type, payload.campus_id, payload.entity_id, payload.message)
        except Exception as e:
            logger.error("external_notification_dispatch_failed", error=str(e), type=payload.type, entity_id=payload.entity_id)

    def drain(self, timeout: Optional[float] = None) -> bool:
        with self._lock:
            pending, self._pending = self._pending, []
        if not pending:
            return True
        _, not_done = wait(pending, timeout=timeout)
        if not_done:
            with self._lock:
                self._pending.extend(not_done)
        return not not_done

    def shutdown(self, timeout: Optional[float] = None) -> None:
        self.drain(timeout)
        self._executor.shutdown(wait=False)
