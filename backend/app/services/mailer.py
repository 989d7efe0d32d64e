"""
Outbound mail dispatcher.

Wraps aiosmtplib with the transport settings from app.config:

  EMAIL_SERVICE=gmail   smtp.gmail.com:465, implicit TLS
  otherwise             SMTP_HOST:SMTP_PORT, implicit TLS only when
                        SMTP_SECURE is set; STARTTLS is negotiated
                        automatically when the server offers it

Timeouts
--------
connection_timeout (60s)  caps the whole handshake: TCP connect, greeting,
                          STARTTLS
greeting_timeout   (30s)  per-read timeout while connecting, so a server that
                          accepts the socket but never greets fails early
socket_timeout     (60s)  per-command timeout once connected (AUTH, NOOP,
                          DATA, ...)

Pooling
-------
With EMAIL_POOL enabled, authenticated connections are kept open and reused:
at most ``max_connections`` are in use at once and each one is retired after
``max_messages_per_connection`` messages. At most ``max_connections`` stay
idle; verify() always opens a new connection, which then joins the pool.
With pooling off every operation opens and closes its own connection.

Errors
------
Transport failures are translated into the app.errors taxonomy so the
router can show a specific message for each:

  missing EMAIL_USER / EMAIL_PASSWORD   ConfigurationError
  aiosmtplib.SMTPAuthenticationError    AuthenticationError
  timeouts of any kind                  MailTimeoutError
  any other SMTP or socket error        UnknownDispatchError
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from email.message import EmailMessage
from email.utils import formatdate, make_msgid
from typing import Any, AsyncIterator, Callable, Optional

import aiosmtplib

from app.config import Settings
from app.errors import (
    AuthenticationError,
    ConfigurationError,
    MailTimeoutError,
    UnknownDispatchError,
)
from app.models.contact import OutboundMail

logger = logging.getLogger(__name__)


@dataclass
class _PooledConnection:
    client: Any
    messages_sent: int = 0


def build_message(mail: OutboundMail) -> EmailMessage:
    """Turn an OutboundMail into a multipart/alternative EmailMessage."""
    message = EmailMessage()
    message["From"] = mail.from_address
    message["To"] = mail.to
    if mail.reply_to:
        message["Reply-To"] = mail.reply_to
    message["Subject"] = mail.subject
    message["Date"] = formatdate(localtime=False, usegmt=True)
    message["Message-ID"] = make_msgid()

    message.set_content(mail.text)
    message.add_alternative(mail.html, subtype="html")
    return message


class MailDispatcher:
    """Sends rendered mail through one SMTP transport configuration."""

    def __init__(
        self,
        settings: Settings,
        smtp_factory: Callable[..., Any] = aiosmtplib.SMTP,
    ):
        self.settings = settings
        self._smtp_factory = smtp_factory
        self._idle: list[_PooledConnection] = []
        self._slots = asyncio.Semaphore(max(1, settings.max_connections))

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def verify(self) -> bool:
        """
        Check that the transport is reachable and accepts our credentials.

        Always opens a fresh authenticated connection and issues a NOOP, so a
        half-open pooled connection cannot stall the check. With pooling on,
        the verified connection joins the pool and the next send reuses it.
        Raises a DispatchError subclass on failure.
        """
        self._require_credentials()
        async with self._translate_errors("verify"):
            async with self._connection(fresh=True) as conn:
                await conn.client.noop()
        logger.debug(f"SMTP transport {self.describe()} verified")
        return True

    async def send(self, mail: OutboundMail) -> str:
        """
        Send one message and return its Message-ID.

        Raises a DispatchError subclass on failure.
        """
        self._require_credentials()
        message = build_message(mail)
        async with self._translate_errors("send"):
            async with self._connection() as conn:
                await conn.client.send_message(message)
                conn.messages_sent += 1
        return message["Message-ID"]

    async def close(self) -> None:
        """Close every idle pooled connection."""
        idle, self._idle = self._idle, []
        for conn in idle:
            await self._discard(conn)

    def describe(self) -> str:
        mode = "ssl" if self.settings.mail_use_tls else "starttls"
        return f"{self.settings.mail_host}:{self.settings.mail_port} ({mode})"

    @property
    def idle_connections(self) -> int:
        return len(self._idle)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require_credentials(self) -> None:
        missing = [
            name for name, value in (
                ("EMAIL_USER", self.settings.email_user),
                ("EMAIL_PASSWORD", self.settings.email_password),
            )
            if not value
        ]
        if missing:
            raise ConfigurationError(
                self.settings.contact_address,
                detail=f"Mail credentials missing: {', '.join(missing)}",
            )

    async def _open(self) -> _PooledConnection:
        s = self.settings
        client = self._smtp_factory(
            hostname=s.mail_host,
            port=s.mail_port,
            use_tls=s.mail_use_tls,
            timeout=s.socket_timeout,
        )
        try:
            await asyncio.wait_for(
                client.connect(timeout=s.greeting_timeout),
                timeout=s.connection_timeout,
            )
            await client.login(s.email_user, s.email_password)
        except BaseException:
            client.close()
            raise
        return _PooledConnection(client=client)

    def _checkout(self) -> Optional[_PooledConnection]:
        while self._idle:
            conn = self._idle.pop()
            if conn.client.is_connected:
                return conn
        return None

    async def _discard(self, conn: _PooledConnection) -> None:
        try:
            if conn.client.is_connected:
                await conn.client.quit()
        except (aiosmtplib.SMTPException, OSError) as e:
            logger.debug(f"Ignoring error while closing SMTP connection: {e}")
            conn.client.close()

    @asynccontextmanager
    async def _connection(self, fresh: bool = False) -> AsyncIterator[_PooledConnection]:
        async with self._slots:
            conn = None
            if self.settings.email_pool and not fresh:
                conn = self._checkout()
            if conn is None:
                conn = await self._open()
            try:
                yield conn
            except BaseException:
                # State of a connection that failed mid-command is unknown
                await self._discard(conn)
                raise
            reusable = (
                self.settings.email_pool
                and conn.client.is_connected
                and conn.messages_sent < self.settings.max_messages_per_connection
            )
            if reusable:
                self._idle.append(conn)
                # Drop the oldest idle connections without QUIT; they may be half-open
                while len(self._idle) > self.settings.max_connections:
                    self._idle.pop(0).client.close()
            else:
                await self._discard(conn)

    @asynccontextmanager
    async def _translate_errors(self, action: str) -> AsyncIterator[None]:
        contact = self.settings.contact_address
        try:
            yield
        except aiosmtplib.SMTPAuthenticationError as e:
            raise AuthenticationError(
                contact, detail=f"SMTP {action} on {self.describe()} rejected credentials: {e}"
            ) from e
        except (aiosmtplib.SMTPTimeoutError, asyncio.TimeoutError) as e:
            raise MailTimeoutError(
                contact, detail=f"SMTP {action} on {self.describe()} timed out: {e!r}"
            ) from e
        except (aiosmtplib.SMTPException, OSError) as e:
            raise UnknownDispatchError(
                contact, detail=f"SMTP {action} on {self.describe()} failed: {e}"
            ) from e
