import asyncio
import logging
import queue
import smtplib
import ssl
import threading
import time
from email.message import EmailMessage
from typing import Callable, List, Optional, Union

from ..exceptions import UpstreamUnavailableError, ValidationError

logger = logging.getLogger(__name__)


class SMTPTransport:
    """
    A single SMTP connection with an explicit lifecycle.

    The connection is opened on first use, checked with NOOP at most once per
    ``healthcheck_seconds`` and replaced when the check or a send fails.
    """

    def __init__(
        self,
        host: str,
        port: int,
        username: str,
        password: str,
        healthcheck_seconds: int = 300,
        connection_factory: Optional[Callable[[], smtplib.SMTP]] = None,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.healthcheck_seconds = healthcheck_seconds
        self._connection_factory = connection_factory or self._connect
        self._conn: Optional[smtplib.SMTP] = None
        self._last_check = 0.0
        self._lock = threading.Lock()

    def _connect(self) -> smtplib.SMTP:
        conn = smtplib.SMTP(self.host, self.port, timeout=30)
        conn.starttls(context=ssl.create_default_context())
        if self.username:
            conn.login(self.username, self.password)
        return conn

    def _drop(self):
        if self._conn is None:
            return
        try:
            self._conn.quit()
        except smtplib.SMTPException:
            pass
        except OSError:
            pass
        self._conn = None

    def _acquire(self) -> smtplib.SMTP:
        now = time.monotonic()
        if self._conn is not None and now - self._last_check >= self.healthcheck_seconds:
            try:
                status, _ = self._conn.noop()
                if status != 250:
                    raise smtplib.SMTPException(f"NOOP returned {status}")
                logger.debug("SMTP connection is healthy")
            except (smtplib.SMTPException, OSError) as e:
                logger.warning("SMTP connection unhealthy, reconnecting: %s", e)
                self._drop()
            self._last_check = now
        if self._conn is None:
            self._conn = self._connection_factory()
            self._last_check = now
        return self._conn

    def send_message(self, message: EmailMessage):
        with self._lock:
            conn = self._acquire()
            try:
                conn.send_message(message)
            except (smtplib.SMTPException, OSError):
                self._drop()
                raise

    def close(self):
        with self._lock:
            self._drop()


class SMTPTransportPool:
    """
    Up to ``size`` SMTPTransport connections shared by concurrent senders.

    A send borrows an idle connection, opening a new one while fewer than
    ``size`` exist, and blocks while all of them are busy.
    """

    def __init__(self, transport_factory: Callable[[], SMTPTransport], size: int = 5):
        self.size = max(1, size)
        self._transport_factory = transport_factory
        self._idle: queue.LifoQueue = queue.LifoQueue()
        self._transports: List[SMTPTransport] = []
        self._slots = threading.BoundedSemaphore(self.size)
        self._lock = threading.Lock()

    def _checkout(self) -> SMTPTransport:
        try:
            return self._idle.get_nowait()
        except queue.Empty:
            pass
        with self._lock:
            transport = self._transport_factory()
            self._transports.append(transport)
        logger.debug("Opened SMTP connection %s of %s", len(self._transports), self.size)
        return transport

    def send_message(self, message: EmailMessage):
        with self._slots:
            transport = self._checkout()
            try:
                transport.send_message(message)
            finally:
                self._idle.put(transport)

    def close(self):
        with self._lock:
            for transport in self._transports:
                transport.close()


class Mailer:
    def __init__(
        self,
        transport: Union[SMTPTransport, SMTPTransportPool],
        sender_address: str,
        sender_name: str,
        max_retries: int = 3,
        backoff_base: float = 2.0,
    ):
        self.transport = transport
        self.sender_address = sender_address
        self.sender_name = sender_name
        self.max_retries = max(1, max_retries)
        self.backoff_base = backoff_base

    def _build(self, to: str, subject: str, html: str) -> EmailMessage:
        message = EmailMessage()
        message["From"] = f"{self.sender_name} <{self.sender_address}>"
        message["To"] = to
        message["Subject"] = subject
        message["X-Priority"] = "1"
        message.set_content("This message requires an HTML capable mail client.")
        message.add_alternative(html, subtype="html")
        return message

    async def send(self, to: str, subject: str, html: str):
        if not to:
            raise ValidationError("Recipient email is required")
        message = self._build(to, subject, html)
        for attempt in range(1, self.max_retries + 1):
            try:
                logger.info("Attempt %s: sending email to %s", attempt, to)
                await asyncio.to_thread(self.transport.send_message, message)
                logger.info("Email sent to %s", to)
                return
            except (smtplib.SMTPException, OSError) as e:
                logger.error("Attempt %s to send email to %s failed: %s", attempt, to, e)
                if attempt == self.max_retries:
                    raise UpstreamUnavailableError(
                        f"Failed to send email after {self.max_retries} attempts: {e}"
                    )
                await asyncio.sleep(self.backoff_base ** attempt)

    def close(self):
        self.transport.close()
