"""
Base Backend Adapter

Abstract base class that all backend adapters implement, plus the
profile they hand back on success.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass
class ExternalProfile:
    """
    What an external backend tells us about a verified login.

    Only LDAP and GitHub fill in more than the login itself.
    """

    login: str
    username: str = ""
    first_name: str = ""
    surname: str = ""
    full_name: str = ""
    email: str = ""
    is_admin: bool = False
    website: str = ""
    location: str = ""


class BackendAdapter(ABC):
    """
    Abstract base class for credential verification adapters.

    Contract: verify() either returns a profile or raises
    CredentialRejected (bad login/password) or BackendUnavailable
    (transport/protocol failure). Adapters never retry.
    """

    def __init__(self, config):
        """
        Args:
            config: The source's config variant
        """
        self.config = config

    @abstractmethod
    def verify(self, login: str, password: str) -> ExternalProfile:
        """
        Verifies credentials against the external system.

        Args:
            login: Upstream login identifier
            password: Password in plain text

        Returns:
            ExternalProfile on success

        Raises:
            CredentialRejected: Wrong login or password
            BackendUnavailable: Anything else went wrong
        """
        pass

    @abstractmethod
    def get_name(self) -> str:
        """
        Returns adapter identifier.

        Returns:
            str: Adapter name (e.g., 'ldap', 'smtp', 'pam', 'github')
        """
        pass
