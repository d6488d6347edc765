"""Collaborator interfaces consumed by the triage core.

Implementations live beside this module (Gmail, HTTP ordering scraper); tests
substitute in-memory fakes.
"""

from __future__ import annotations

from typing import Protocol

from triage.domain.models import CanonicalMessage, EmailContent, ExternalObservation
from triage.domain.types import MailboxOp


class OrderingSource(Protocol):
    """Produces the externally observed inbox ordering for an account."""

    async def scrape_order(self, account: str) -> list[ExternalObservation]: ...


class MessageSource(Protocol):
    """Canonical message listing, content fetch, and mutation for an account."""

    async def list_canonical(self, account: str) -> list[CanonicalMessage]: ...

    async def fetch_content(self, account: str, message_id: str) -> EmailContent: ...

    async def mutate(self, account: str, op: MailboxOp, message_id: str) -> None: ...
