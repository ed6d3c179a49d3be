"""
Abstract base class for enrichment backends.

Adding a new enrichment backend = new file implementing fetch().
The tuple source calls backends without knowing their internals - Strategy pattern.
"""

from abc import ABC, abstractmethod
from typing import Optional

from models import LookupKey, LookupOutcome


class EnrichmentBackend(ABC):
    @property
    @abstractmethod
    def configured(self) -> bool:
        """False when the backend cannot be reached at all (e.g. no host set)."""

    @abstractmethod
    async def fetch(self, key: LookupKey) -> LookupOutcome:
        """
        Look up one flow and return its outcome.

        Must not raise for expected failures - every failure is returned as
        one of the LookupOutcome failure types.
        """

    @property
    def host(self) -> Optional[str]:
        """Backend host reported by /health; None when the backend has none."""
        return None
