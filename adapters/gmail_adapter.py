"""
Gmail adapters — message list, mailbox counters and a 7-day analysis.

Gmail's list endpoint returns only ids, so ``fetch_emails`` issues one
metadata request per message and skips messages whose detail call fails.
"""

from __future__ import annotations

import logging
from collections import Counter
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from adapters import adapter
from adapters.base import ProviderClient, bearer
from adapters.schemas import DailyCount, EmailList, GmailAnalysis, GmailEmail, GmailStats, SenderCount
from connectors.errors import ProviderAPIError
from database.models import Notification

logger = logging.getLogger(__name__)

_GMAIL_API = "https://gmail.googleapis.com/gmail/v1/users/me"
_HEADERS = ["Subject", "From", "To", "Date"]
_URGENT_WORDS = ("urgent", "important")


# ── Pure helpers ──────────────────────────────────────────────────────────


def parse_message(detail: Dict[str, Any]) -> GmailEmail:
    """Map a Gmail ``messages.get`` payload onto ``GmailEmail``."""
    headers = {
        h.get("name", "").lower(): h.get("value", "")
        for h in (detail.get("payload") or {}).get("headers", [])
    }
    labels = detail.get("labelIds") or []
    try:
        timestamp = int(detail.get("internalDate") or 0)
    except (TypeError, ValueError):
        timestamp = 0
    return GmailEmail(
        id=detail["id"],
        thread_id=detail.get("threadId", ""),
        subject=headers.get("subject", ""),
        sender=headers.get("from", ""),
        to=headers.get("to", ""),
        date=headers.get("date", ""),
        snippet=detail.get("snippet", ""),
        is_read="UNREAD" not in labels,
        is_important="IMPORTANT" in labels,
        labels=labels,
        timestamp=timestamp,
    )


def is_priority(email: GmailEmail) -> bool:
    """Unread and either flagged important or urgent-sounding."""
    subject = email.subject.lower()
    return not email.is_read and (email.is_important or any(w in subject for w in _URGENT_WORDS))


def top_senders(emails: Iterable[GmailEmail], limit: int = 10) -> List[SenderCount]:
    counts = Counter(e.sender for e in emails if e.sender)
    return [SenderCount(sender=s, count=c) for s, c in counts.most_common(limit)]


def email_trends(emails: Iterable[GmailEmail]) -> List[DailyCount]:
    counts: Counter = Counter()
    for e in emails:
        if e.timestamp:
            day = datetime.fromtimestamp(e.timestamp / 1000, tz=timezone.utc).date()
            counts[day.isoformat()] += 1
    return [DailyCount(date=d, count=c) for d, c in sorted(counts.items())]


def analyze(emails: List[GmailEmail]) -> GmailAnalysis:
    return GmailAnalysis(
        total_emails=len(emails),
        unread_count=sum(1 for e in emails if not e.is_read),
        important_count=sum(1 for e in emails if e.is_important),
        top_senders=top_senders(emails),
        email_trends=email_trends(emails),
        priority_emails=[e for e in emails if is_priority(e)][:10],
    )


# ── Fallbacks ─────────────────────────────────────────────────────────────


def mock_email_list() -> EmailList:
    return EmailList(emails=[], total_results=0)


def mock_gmail_stats() -> GmailStats:
    return GmailStats(
        total_emails=145,
        unread_emails=23,
        sent_emails=67,
        draft_emails=5,
        spam_emails=12,
    )


def mock_gmail_analysis() -> GmailAnalysis:
    today = date.today()
    return GmailAnalysis(
        total_emails=145,
        unread_count=23,
        important_count=8,
        top_senders=[
            SenderCount(sender="team@company.com", count=12),
            SenderCount(sender="notifications@service.com", count=8),
            SenderCount(sender="support@platform.com", count=6),
        ],
        email_trends=[
            DailyCount(date=(today - timedelta(days=6 - i)).isoformat(), count=c)
            for i, c in enumerate((14, 18, 11, 21, 17, 9, 12))
        ],
        priority_emails=[],
    )


# ── Adapters ──────────────────────────────────────────────────────────────


@adapter("gmail", "fetch_emails", fallback=mock_email_list)
async def fetch_emails(
    token: str,
    integration: Dict[str, Any],
    max_results: int = 20,
    query: str = "in:inbox",
) -> EmailList:
    """List messages matching ``query`` with their headers and labels."""
    async with ProviderClient("gmail", bearer(token)) as client:
        listing = await client.get(
            f"{_GMAIL_API}/messages",
            params={"q": query, "maxResults": max(1, min(max_results, 100))},
        )
        emails: List[GmailEmail] = []
        for message in listing.get("messages") or []:
            try:
                detail = await client.get(
                    f"{_GMAIL_API}/messages/{message['id']}",
                    params={"format": "metadata", "metadataHeaders": _HEADERS},
                )
            except ProviderAPIError as exc:
                logger.debug("Skipping Gmail message %s: %s", message.get("id"), exc.message)
                continue
            emails.append(parse_message(detail))

    return EmailList(emails=emails, total_results=listing.get("resultSizeEstimate", 0))


@adapter("gmail", "get_email_stats", fallback=mock_gmail_stats)
async def get_email_stats(token: str, integration: Dict[str, Any]) -> GmailStats:
    """Mailbox counters from the system labels."""
    async with ProviderClient("gmail", bearer(token)) as client:
        labels = {}
        for label_id in ("INBOX", "SENT", "DRAFT", "SPAM"):
            labels[label_id] = await client.get(f"{_GMAIL_API}/labels/{label_id}")

    return GmailStats(
        total_emails=labels["INBOX"].get("messagesTotal", 0),
        unread_emails=labels["INBOX"].get("messagesUnread", 0),
        sent_emails=labels["SENT"].get("messagesTotal", 0),
        draft_emails=labels["DRAFT"].get("messagesTotal", 0),
        spam_emails=labels["SPAM"].get("messagesTotal", 0),
    )


@adapter("gmail", "analyze_emails", fallback=mock_gmail_analysis)
async def analyze_emails(token: str, integration: Dict[str, Any]) -> GmailAnalysis:
    """Unread / important counts, top senders and daily volume for the last week."""
    listing = await fetch_emails(token, integration, max_results=50, query="newer_than:7d")
    return analyze(listing.emails)


# ── Notifications ─────────────────────────────────────────────────────────


async def create_email_notifications(
    session: AsyncSession,
    user_id: str,
    emails: List[GmailEmail],
) -> int:
    """
    Insert one notification per priority email not notified before.

    Returns the number of notifications created.
    """
    result = await session.execute(
        select(Notification.metadata_).where(
            Notification.user_id == user_id,
            Notification.channel == "gmail",
        )
    )
    seen = {(m or {}).get("emailId") for m in result.scalars().all()}

    created = 0
    for email in emails:
        if not is_priority(email) or email.id in seen:
            continue
        session.add(
            Notification(
                user_id=user_id,
                title=f"New Email: {email.subject}",
                message=f"From: {email.sender}\n{email.snippet}",
                type="email",
                channel="gmail",
                metadata_={
                    "emailId": email.id,
                    "threadId": email.thread_id,
                    "sender": email.sender,
                    "isImportant": email.is_important,
                },
            )
        )
        seen.add(email.id)
        created += 1

    if created:
        await session.flush()
        logger.info("Created %d Gmail notifications for user %s", created, user_id)
    return created
