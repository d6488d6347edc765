"""Gmail API implementation of the message-source collaborator.

Provides the ``GmailMailbox`` class that lists inbox threads as canonical
messages, fetches full thread content for announcements, and applies the
triage mutations (archive, trash, star and their inverses) at thread level.

The Gmail client library is synchronous; every public method runs its
blocking work through ``asyncio.to_thread``.
"""

from __future__ import annotations

import asyncio
import email.utils
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

import structlog

from triage.domain.models import CanonicalMessage, EmailContent
from triage.domain.types import MailboxOp
from triage.mailbox.parser import extract_body_text, extract_latest_reply, header_map
from triage.resilience.retry import resilient_api_call

logger = structlog.get_logger()

INBOX_LABEL = "INBOX"
STARRED_LABEL = "STARRED"

_METADATA_HEADERS = ["From", "Subject", "Date"]


def _internal_date_to_iso(internal_date: str | int | None) -> str:
    """Convert Gmail ``internalDate`` (ms since epoch) to ISO 8601."""
    millis = int(internal_date or 0)
    return datetime.fromtimestamp(millis / 1000, tz=UTC).isoformat()


class GmailMailbox:
    """Wrapper around the Gmail API service for triage operations.

    All methods operate through the provided Gmail API service resource
    (obtained via ``get_gmail_service``).  The service is bound to a single
    authenticated account; the ``account`` argument each method receives is
    used for logging only.

    Args:
        service: An authenticated Gmail API v1 service resource.
        max_results: How many inbox threads ``list_canonical`` returns.
    """

    def __init__(self, service: Any, max_results: int = 20) -> None:
        self._service = service
        self._max_results = max_results
        self._mutations: dict[MailboxOp, Callable[[str], Any]] = {
            MailboxOp.ARCHIVE: lambda tid: self._modify(tid, remove=[INBOX_LABEL]),
            MailboxOp.UNARCHIVE: lambda tid: self._modify(tid, add=[INBOX_LABEL]),
            MailboxOp.DELETE: self._trash,
            MailboxOp.UNDELETE: self._untrash,
            MailboxOp.STAR: lambda tid: self._modify(tid, add=[STARRED_LABEL]),
            MailboxOp.UNSTAR: lambda tid: self._modify(tid, remove=[STARRED_LABEL]),
        }

    # ------------------------------------------------------------------
    # Async collaborator interface
    # ------------------------------------------------------------------

    @resilient_api_call("gmail_list_inbox")
    async def list_canonical(self, account: str) -> list[CanonicalMessage]:
        """List the newest inbox threads as canonical messages, newest first."""
        messages = await asyncio.to_thread(self._list_inbox_threads)
        logger.info("gmail_inbox_listed", account=account, count=len(messages))
        return messages

    async def fetch_content(self, account: str, message_id: str) -> EmailContent:
        """Fetch the latest message of a thread with its reply text."""
        return await asyncio.to_thread(self._get_thread_content, message_id)

    async def mutate(self, account: str, op: MailboxOp, message_id: str) -> None:
        """Apply *op* to the thread *message_id*.  Not retried on failure."""
        await asyncio.to_thread(self._mutations[op], message_id)
        logger.info("gmail_thread_mutated", account=account, op=op.value, thread_id=message_id)

    # ------------------------------------------------------------------
    # Blocking Gmail calls
    # ------------------------------------------------------------------

    def _list_inbox_threads(self) -> list[CanonicalMessage]:
        response: dict[str, Any] = (
            self._service.users()
            .threads()
            .list(userId="me", labelIds=[INBOX_LABEL], maxResults=self._max_results)
            .execute()
        )

        messages: list[CanonicalMessage] = []
        for stub in response.get("threads", []):
            thread: dict[str, Any] = (
                self._service.users()
                .threads()
                .get(
                    userId="me",
                    id=stub["id"],
                    format="metadata",
                    metadataHeaders=_METADATA_HEADERS,
                )
                .execute()
            )
            messages.append(self._thread_to_canonical(thread, stub.get("snippet", "")))
        return messages

    @staticmethod
    def _thread_to_canonical(thread: dict[str, Any], snippet: str) -> CanonicalMessage:
        thread_messages = thread.get("messages", [])
        if not thread_messages:
            return CanonicalMessage(id=thread["id"], snippet=snippet)

        # Subject from the opening message, sender/date from the newest one
        first = header_map(thread_messages[0].get("payload", {}))
        latest_msg = thread_messages[-1]
        latest = header_map(latest_msg.get("payload", {}))

        sender = latest.get("From", "")
        _, address = email.utils.parseaddr(sender)
        return CanonicalMessage(
            id=thread["id"],
            subject=first.get("Subject", ""),
            sender=sender,
            sender_address=address.lower(),
            snippet=snippet or latest_msg.get("snippet", ""),
            received_at=_internal_date_to_iso(latest_msg.get("internalDate")),
        )

    def _get_thread_content(self, thread_id: str) -> EmailContent:
        thread: dict[str, Any] = (
            self._service.users().threads().get(userId="me", id=thread_id, format="full").execute()
        )
        thread_messages = thread.get("messages", [])
        if not thread_messages:
            return EmailContent(id=thread_id)

        latest_msg = thread_messages[-1]
        payload = latest_msg.get("payload", {})
        headers = header_map(payload)
        first_headers = header_map(thread_messages[0].get("payload", {}))
        body = extract_latest_reply(extract_body_text(payload))

        return EmailContent(
            id=thread_id,
            sender=headers.get("From", ""),
            subject=first_headers.get("Subject", headers.get("Subject", "")),
            snippet=latest_msg.get("snippet", ""),
            body=body.strip(),
        )

    def _modify(
        self,
        thread_id: str,
        add: list[str] | None = None,
        remove: list[str] | None = None,
    ) -> None:
        body: dict[str, list[str]] = {}
        if add:
            body["addLabelIds"] = add
        if remove:
            body["removeLabelIds"] = remove
        self._service.users().threads().modify(userId="me", id=thread_id, body=body).execute()

    def _trash(self, thread_id: str) -> None:
        self._service.users().threads().trash(userId="me", id=thread_id).execute()

    def _untrash(self, thread_id: str) -> None:
        self._service.users().threads().untrash(userId="me", id=thread_id).execute()
