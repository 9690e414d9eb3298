"""Gmail sent-mail sync.

Scans recently sent messages and attributes each recipient to an investor,
so outreach done from a normal mailbox shows up in the pipeline as an email
activity. Matching tries, in order: exact email address, the investor's
company in the recipient's domain, and a part of the investor's name in the
recipient's local part.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Sequence
from datetime import UTC, datetime, timedelta
from email.utils import parsedate_to_datetime
from typing import Any

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from investor_crm.config import Settings
from investor_crm.models import EmailMatch, GmailSyncResult, Investor

logger = logging.getLogger(__name__)

_ADDRESS_RE = re.compile(r"[\w.-]+@[\w.-]+\.\w+")
_NON_ALNUM_RE = re.compile(r"[^a-z0-9]")


class GmailAPIError(Exception):
    """Raised when the Gmail API returns an error."""

    def __init__(self, status_code: int, detail: str) -> None:
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"Gmail API error {status_code}: {detail}")


class GmailAuthError(GmailAPIError):
    """Raised when the access token is missing, expired or revoked."""

    def __init__(self, detail: str) -> None:
        super().__init__(401, detail)


class GmailClient:
    """Minimal async client for the Gmail v1 REST API."""

    def __init__(self, access_token: str, settings: Settings | None = None) -> None:
        if not access_token:
            raise GmailAuthError("Not authenticated with Gmail")
        self._settings = settings or Settings()  # type: ignore[call-arg]
        self._http = httpx.AsyncClient(
            base_url=self._settings.gmail_base_url,
            headers={
                "Authorization": f"Bearer {access_token}",
                "Accept": "application/json",
            },
            timeout=httpx.Timeout(self._settings.api_timeout),
        )

    async def close(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> GmailClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    @retry(
        retry=retry_if_exception_type((httpx.TransportError, httpx.TimeoutException)),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=16),
        reraise=True,
    )
    async def _get(self, path: str, params: Any = None) -> dict[str, Any]:
        resp = await self._http.get(path, params=params)
        if resp.status_code == 401:
            raise GmailAuthError("Gmail access token rejected")
        if resp.status_code >= 400:
            raise GmailAPIError(resp.status_code, resp.text[:200])
        return resp.json()  # type: ignore[no-any-return]

    async def list_sent_messages(self, after: datetime, *, max_results: int = 100) -> list[str]:
        """Ids of messages sent after *after*, newest first."""
        data = await self._get(
            "/messages",
            params={"q": f"in:sent after:{int(after.timestamp())}", "maxResults": max_results},
        )
        return [m["id"] for m in data.get("messages") or []]

    async def get_message_headers(self, message_id: str) -> dict[str, str]:
        data = await self._get(
            f"/messages/{message_id}",
            params=[
                ("format", "metadata"),
                ("metadataHeaders", "To"),
                ("metadataHeaders", "Subject"),
                ("metadataHeaders", "Date"),
            ],
        )
        headers = (data.get("payload") or {}).get("headers") or []
        return {h["name"]: h.get("value", "") for h in headers if "name" in h}


# ---------------------------------------------------------------------------
# Matching
# ---------------------------------------------------------------------------

def extract_addresses(header: str) -> list[str]:
    return [a.lower() for a in _ADDRESS_RE.findall(header or "")]


def match_investor(address: str, investors: Iterable[Investor]) -> Investor | None:
    """Find the first investor *address* plausibly belongs to."""
    address = address.lower()
    local, _, domain = address.partition("@")
    domain_root = domain.split(".")[0]
    for inv in investors:
        if inv.email and inv.email.lower() == address:
            return inv
        if inv.company:
            company = _NON_ALNUM_RE.sub("", inv.company.lower())
            if company and (company in domain or (domain_root and domain_root in company)):
                return inv
        if inv.name:
            parts = inv.name.lower().split(" ")
            if any(len(part) > 2 and part in local for part in parts):
                return inv
    return None


def latest_by_investor(matches: Iterable[EmailMatch]) -> list[EmailMatch]:
    """Keep only the most recent match per investor."""
    latest: dict[int, EmailMatch] = {}
    for match in matches:
        existing = latest.get(match.investor_id)
        if existing is None or match.timestamp > existing.timestamp:
            latest[match.investor_id] = match
    return list(latest.values())


async def sync_sent_mail(
    client: GmailClient,
    investors: Sequence[Investor],
    *,
    now: datetime | None = None,
    lookback_days: int = 30,
    max_messages: int = 50,
) -> GmailSyncResult:
    """Scan recent sent mail and return the latest email per matched investor."""
    now = now or datetime.now(UTC)
    message_ids = await client.list_sent_messages(now - timedelta(days=lookback_days))
    matches: list[EmailMatch] = []

    for message_id in message_ids[:max_messages]:
        try:
            headers = await client.get_message_headers(message_id)
            date_header = headers.get("Date", "")
            timestamp = parsedate_to_datetime(date_header)
            if timestamp.tzinfo is None:
                timestamp = timestamp.replace(tzinfo=UTC)
            for address in extract_addresses(headers.get("To", "")):
                investor = match_investor(address, investors)
                if investor is None:
                    continue
                matches.append(
                    EmailMatch(
                        investor_id=investor.id,
                        email=address,
                        subject=headers.get("Subject", ""),
                        date=date_header,
                        timestamp=timestamp,
                    )
                )
        except GmailAuthError:
            raise
        except (GmailAPIError, httpx.HTTPError, ValueError, TypeError) as exc:
            logger.error("Error processing message %s: %s", message_id, exc)

    latest = latest_by_investor(matches)
    return GmailSyncResult(
        scanned=len(message_ids),
        matches=latest,
        message=f"Found {len(latest)} investor matches from {len(message_ids)} sent emails",
    )
