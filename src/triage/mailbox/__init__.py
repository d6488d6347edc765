"""Mailbox collaborators: ports, Gmail adapter, ordering scraper client, parsing."""

from triage.mailbox.gmail import GmailMailbox
from triage.mailbox.ordering import ScrapeOrderingClient
from triage.mailbox.parser import extract_body_text, extract_latest_reply, strip_html
from triage.mailbox.ports import MessageSource, OrderingSource

__all__ = [
    "GmailMailbox",
    "MessageSource",
    "OrderingSource",
    "ScrapeOrderingClient",
    "extract_body_text",
    "extract_latest_reply",
    "strip_html",
]
