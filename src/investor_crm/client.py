"""Async HTTP client for Apollo.io contact lookup.

Finds the best person to contact at an investor's firm: searches Apollo's
people endpoint for investment titles suited to the investor type, then ranks
the results so people with an email and an investing title come first.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from investor_crm.config import Settings
from investor_crm.models import ApolloContact, ContactLookup, InvestorType

logger = logging.getLogger(__name__)

SETUP_URL = "https://app.apollo.io/settings/integrations/api"

TITLES_BY_TYPE: dict[str, list[str]] = {
    InvestorType.CRYPTO_VC: ["Partner", "General Partner", "Managing Partner", "Principal", "Investment"],
    InvestorType.INSTITUTIONAL: ["Managing Director", "Director", "Head", "Portfolio Manager"],
    InvestorType.PENSION_ENDOWMENT: ["CIO", "Chief Investment", "Director", "Head"],
    InvestorType.FUND_OF_FUNDS: ["Partner", "Managing Director", "Principal", "Head"],
    InvestorType.FAMILY_OFFICE: ["CIO", "Partner", "Managing Director", "Principal"],
    InvestorType.ANGEL: ["Founder", "CEO", "Managing Partner", "Principal"],
    InvestorType.INCEPTION_FUND: ["Partner", "General Partner", "Founding Partner"],
    InvestorType.CORPORATE_VC: ["Partner", "Director", "Head", "Principal"],
    InvestorType.TRADFI: ["Managing Director", "Director", "Head", "VP"],
    InvestorType.EXCHANGE_VC: ["Partner", "Head", "Director"],
}
DEFAULT_TITLES = ["Partner", "Director", "Principal", "Head"]

INVESTOR_TITLE_KEYWORDS = (
    "partner",
    "principal",
    "investor",
    "investment",
    "venture",
    "managing director",
    "gp",
    "general partner",
)
NON_INVESTOR_TITLE_KEYWORDS = ("designer", "engineer", "marketing")


class ApolloAPIError(Exception):
    """Raised when the Apollo API returns an error or is not configured."""

    def __init__(self, status_code: int, detail: str) -> None:
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"Apollo API error {status_code}: {detail}")


def titles_for_type(investor_type: str) -> list[str]:
    return TITLES_BY_TYPE.get(investor_type, DEFAULT_TITLES)


def score_person(person: dict[str, Any]) -> int:
    """Rank a person: an email dominates, investing titles add, other roles subtract."""
    score = 0
    title = (person.get("title") or "").lower()
    if person.get("email"):
        score += 100
    for kw in INVESTOR_TITLE_KEYWORDS:
        if kw in title:
            score += 10
    if any(kw in title for kw in NON_INVESTOR_TITLE_KEYWORDS):
        score -= 20
    return score


class ApolloClient:
    """Async client wrapping Apollo's people search.

    Usage::

        async with ApolloClient(settings) as apollo:
            lookup = await apollo.find_contact("Acme Ventures", "crypto-vc")
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or Settings()  # type: ignore[call-arg]
        self._http = httpx.AsyncClient(
            base_url=self._settings.apollo_base_url,
            headers={
                "Content-Type": "application/json",
                "Accept": "application/json",
                "x-api-key": self._settings.apollo_api_key,
            },
            timeout=httpx.Timeout(self._settings.api_timeout),
        )

    async def close(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> ApolloClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    @retry(
        retry=retry_if_exception_type((httpx.TransportError, httpx.TimeoutException)),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=16),
        reraise=True,
    )
    async def _post(self, path: str, body: dict[str, Any]) -> dict[str, Any]:
        if not self._settings.apollo_api_key:
            raise ApolloAPIError(
                0,
                "Apollo API key not configured. Set INVESTOR_CRM_APOLLO_API_KEY "
                f"(see {SETUP_URL}).",
            )
        resp = await self._http.post(path, json=body)

        if resp.status_code == 429:
            retry_after = int(resp.headers.get("Retry-After", "5"))
            logger.warning("Rate limited by Apollo, retry after %ds", retry_after)
            raise httpx.TransportError(f"Rate limited, retry after {retry_after}s")
        if resp.status_code >= 400:
            raise ApolloAPIError(resp.status_code, _error_detail(resp))
        logger.debug("Apollo response: %s", resp.text[:500])
        return resp.json()  # type: ignore[no-any-return]

    async def search_people(
        self,
        company: str,
        investor_type: str = "",
        *,
        per_page: int = 15,
    ) -> list[dict[str, Any]]:
        data = await self._post(
            "/mixed_people/api_search",
            {
                "organization_name": company,
                "person_titles": titles_for_type(investor_type),
                "per_page": per_page,
                "page": 1,
                "reveal_personal_emails": True,
            },
        )
        return list(data.get("people") or [])

    async def find_contact(self, company: str, investor_type: str = "") -> ContactLookup:
        """Pick the best contact at *company* for an investor of *investor_type*."""
        people = await self.search_people(company, investor_type)
        if not people:
            return ContactLookup(
                success=False,
                error="No contacts found at this company",
                suggestion=f'Try searching LinkedIn for "{company}" partners',
            )

        ranked = sorted(
            (_parse_person(p, company) for p in people),
            key=lambda c: c.score,
            reverse=True,
        )
        best = ranked[0]
        has_email = bool(best.email)
        logger.info("Apollo: best contact at %s is %s (email=%s)", company, best.name, has_email)
        return ContactLookup(
            success=True,
            has_email=has_email,
            contact=best,
            alternatives=ranked[:5],
            note=None
            if has_email
            else "Apollo free tier doesn't include emails. Use LinkedIn to reach out directly.",
        )


# ---------------------------------------------------------------------------
# Parsing helpers
# ---------------------------------------------------------------------------

def _error_detail(resp: httpx.Response) -> str:
    try:
        data = resp.json()
    except ValueError:
        return resp.text[:200] or f"HTTP {resp.status_code}"
    if isinstance(data, dict):
        return str(data.get("error") or data.get("message") or data)
    return str(data)


def _parse_person(raw: dict[str, Any], company: str) -> ApolloContact:
    organization = raw.get("organization") or {}
    return ApolloContact(
        name=raw.get("name") or "",
        email=raw.get("email"),
        title=raw.get("title") or "",
        linkedin=raw.get("linkedin_url"),
        company=organization.get("name") or company,
        score=score_person(raw),
    )
