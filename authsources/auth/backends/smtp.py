"""
SMTP Backend Adapter

Verifies a mailbox login by authenticating against an SMTP server with
the PLAIN or LOGIN SASL mechanism, optionally after STARTTLS.
"""

import logging
import smtplib
import ssl

from authsources.auth.backends.base import BackendAdapter, ExternalProfile
from authsources.errors import BackendUnavailable, CredentialRejected

logger = logging.getLogger(__name__)

SMTP_PLAIN = "PLAIN"
SMTP_LOGIN = "LOGIN"
SMTP_AUTHS = [SMTP_PLAIN, SMTP_LOGIN]

# Gmail answers bad credentials with this text instead of a clean 535
NOT_ACCEPTED_MESSAGE = "Username and Password not accepted"


class SMTPProtocolError(Exception):
    """Server is reachable but cannot do what the source asks for."""


def is_rejection(error: Exception) -> bool:
    """True when an SMTP error means bad credentials rather than a failure."""
    if isinstance(error, smtplib.SMTPResponseException) and error.smtp_code == 535:
        return True
    return NOT_ACCEPTED_MESSAGE in str(error)


class SMTPAdapter(BackendAdapter):
    """
    SMTP credential verification.

    Domain allowlist is checked before anything touches the network.
    """

    def __init__(self, config, helo_name: str = None):
        super().__init__(config)
        if helo_name is None:
            from authsources.utils.config import config as settings

            helo_name = settings.SMTP_HELO
        self.helo_name = helo_name

    def get_name(self) -> str:
        return "smtp"

    def verify(self, login: str, password: str) -> ExternalProfile:
        if not self.config.domain_allowed(login):
            logger.warning(f"SMTP: login '{login}' is not in an allowed domain")
            raise CredentialRejected(login)

        if self.config.auth not in SMTP_AUTHS:
            raise BackendUnavailable(login, f"unsupported SMTP authentication type: {self.config.auth!r}")

        try:
            self._authenticate(login, password)
        except (smtplib.SMTPException, SMTPProtocolError, OSError) as e:
            if is_rejection(e):
                logger.warning(f"SMTP: credentials rejected for '{login}'")
                raise CredentialRejected(login) from None
            logger.error(f"SMTP: error while authenticating '{login}' at {self.config.host}: {e}")
            raise BackendUnavailable(login, e) from e

        logger.info(f"SMTP: user '{login}' verified at {self.config.host}")
        return ExternalProfile(login=login, email=login)

    def _authenticate(self, login: str, password: str) -> None:
        cfg = self.config
        with smtplib.SMTP(cfg.host, cfg.port) as client:
            client.ehlo(self.helo_name)

            if cfg.tls:
                if not client.has_extn("starttls"):
                    raise SMTPProtocolError("SMTP server does not support TLS")
                context = ssl.create_default_context()
                if cfg.skip_verify:
                    context.check_hostname = False
                    context.verify_mode = ssl.CERT_NONE
                client.starttls(context=context)
                client.ehlo(self.helo_name)

            if not client.has_extn("auth"):
                raise SMTPProtocolError("unsupported SMTP authentication method")

            client.user, client.password = login, password
            if cfg.auth == SMTP_PLAIN:
                client.auth(SMTP_PLAIN, client.auth_plain)
            else:
                client.auth(SMTP_LOGIN, client.auth_login)
