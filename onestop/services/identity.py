"""
Identity Provider Adapters

The core only needs one thing from the identity provider: the subject id
of the authenticated caller, or None when nobody is signed in.
"""

from abc import ABC, abstractmethod
from typing import Optional


class IdentityProvider(ABC):
    """Resolves the authenticated caller for the current request."""

    @abstractmethod
    def current_subject(self) -> Optional[str]:
        """Return the caller's subject id, or None if unauthenticated."""
        pass


class StaticIdentityProvider(IdentityProvider):
    """
    Identity held in memory.

    Used by the Streamlit app (one provider per browser session) and by tests.
    """

    def __init__(self, subject: Optional[str] = None):
        self._subject = subject

    def current_subject(self) -> Optional[str]:
        return self._subject

    def sign_in(self, subject: str) -> None:
        self._subject = subject.strip() or None

    def sign_out(self) -> None:
        self._subject = None
