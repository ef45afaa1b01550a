"""
PAM Backend Adapter

Delegates to the local PAM stack through python-pam. Only usable on
hosts where the service process may talk to PAM (usually Linux).
"""

import logging

from authsources.auth.backends.base import BackendAdapter, ExternalProfile
from authsources.errors import BackendUnavailable, CredentialRejected

logger = logging.getLogger(__name__)

AUTH_FAILURE_MESSAGE = "Authentication failure"


def _pam_authenticator():
    """python-pam binds libpam at import time, so import on first use."""
    import pam

    return pam.pam()


class PAMAdapter(BackendAdapter):
    def get_name(self) -> str:
        return "pam"

    def verify(self, login: str, password: str) -> ExternalProfile:
        service = self.config.service_name
        try:
            authenticator = _pam_authenticator()
            ok = authenticator.authenticate(login, password, service=service)
        except Exception as e:  # python-pam surfaces ctypes/OS errors unwrapped
            logger.error(f"PAM: service '{service}' failed for '{login}': {e}")
            raise BackendUnavailable(login, e) from e

        if ok:
            logger.info(f"PAM: user '{login}' verified via '{service}'")
            return ExternalProfile(login=login, email=login)

        reason = str(authenticator.reason or "")
        if AUTH_FAILURE_MESSAGE in reason:
            logger.warning(f"PAM: authentication failure for '{login}'")
            raise CredentialRejected(login)

        logger.error(f"PAM: service '{service}' error for '{login}': {reason} (code {authenticator.code})")
        raise BackendUnavailable(login, reason or f"PAM error code {authenticator.code}")
