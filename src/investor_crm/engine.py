"""Scoring and recommendation engine.

Pure functions over an in-memory investor collection:

- :func:`classify_investor_type` — map a loose import row to an investor type
- :func:`suggest_pitch_angle` — first pitch angle whose ``best_for`` fits a type
- :func:`calculate_engagement_score` — 0–100 additive engagement heuristic
- :func:`get_outreach_urgency` — now / soon / ok outreach classification
- :func:`get_ai_prioritized_investors` — weighted top-10 targets with reasons
- :func:`generate_recommendations` — category buckets of investors to act on

Every function that depends on the current time accepts an explicit ``now``
keyword; when omitted the wall clock is sampled once per call. Naive
datetimes are interpreted as UTC. Nothing in this module raises for
unexpected field values: unknown stages, types and priorities simply score 0.
"""

from __future__ import annotations

import math
from collections import Counter
from collections.abc import Iterable, Mapping, Sequence
from datetime import UTC, datetime
from typing import Any

from investor_crm.models import (
    DEFAULT_PITCH_ANGLE,
    PITCH_ANGLES,
    Investor,
    InvestorType,
    InvestorView,
    PipelineStage,
    PipelineSummary,
    PrioritizedInvestor,
    Priority,
    RecommendationBucket,
    Urgency,
    UrgencyLevel,
    stage_info,
)

SECONDS_PER_DAY = 60 * 60 * 24

CLOSED_STAGES = frozenset({PipelineStage.COMMITTED, PipelineStage.PASSED})

COLOR_NOW = "#EF4444"
COLOR_SOON = "#F59E0B"
COLOR_OK = "#10B981"

ENGAGEMENT_STAGE_POINTS: dict[str, int] = {
    PipelineStage.COMMITTED: 100,
    PipelineStage.TERM_SHEET: 80,
    PipelineStage.IN_DILIGENCE: 60,
    PipelineStage.MEETING_SCHEDULED: 40,
    PipelineStage.CONTACTED: 20,
    PipelineStage.OUTREACH_READY: 10,
    PipelineStage.RESEARCHING: 5,
    PipelineStage.IDENTIFIED: 0,
    PipelineStage.PASSED: 0,
}

AI_STAGE_WEIGHT: dict[str, int] = {
    PipelineStage.TERM_SHEET: 50,
    PipelineStage.IN_DILIGENCE: 40,
    PipelineStage.MEETING_SCHEDULED: 35,
    PipelineStage.CONTACTED: 25,
    PipelineStage.OUTREACH_READY: 20,
    PipelineStage.RESEARCHING: 10,
    PipelineStage.IDENTIFIED: 5,
}

AI_TYPE_FIT: dict[str, int] = {
    InvestorType.CRYPTO_VC: 25,
    InvestorType.INCEPTION_FUND: 22,
    InvestorType.EXCHANGE_VC: 20,
    InvestorType.ANGEL: 18,
    InvestorType.CORPORATE_VC: 15,
    InvestorType.FUND_OF_FUNDS: 12,
    InvestorType.FAMILY_OFFICE: 10,
    InvestorType.INSTITUTIONAL: 8,
    InvestorType.TRADFI: 5,
}

CRYPTO_NATIVE_TYPES = frozenset(
    {InvestorType.CRYPTO_VC, InvestorType.INCEPTION_FUND, InvestorType.EXCHANGE_VC}
)

INSTITUTIONAL_TYPES = frozenset(
    {
        InvestorType.INSTITUTIONAL,
        InvestorType.PENSION_ENDOWMENT,
        InvestorType.FUND_OF_FUNDS,
        InvestorType.TRADFI,
    }
)

MAX_PRIORITIZED = 10
MAX_BUCKET_SIZE = 10
MAX_REASONS = 3


# ---------------------------------------------------------------------------
# Time helpers
# ---------------------------------------------------------------------------

def _now(now: datetime | None) -> datetime:
    if now is None:
        return datetime.now(UTC)
    return _aware(now)


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=UTC)


def days_since(timestamp: datetime, now: datetime) -> float:
    """Fractional days elapsed from *timestamp* to *now*."""
    return (_aware(now) - _aware(timestamp)).total_seconds() / SECONDS_PER_DAY


def round_half_away(value: float) -> int:
    """Round to the nearest integer, halves away from zero."""
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


def _record_fields(investor: Investor) -> dict[str, Any]:
    # Views subclass Investor; only the stored fields are carried over.
    return investor.model_dump(include=set(Investor.model_fields))


# ---------------------------------------------------------------------------
# Type classification
# ---------------------------------------------------------------------------

def _first_text(raw: Mapping[str, Any], *keys: str) -> str:
    for key in keys:
        value = raw.get(key)
        if value:
            return str(value).lower()
    return ""


def classify_investor_type(raw: Mapping[str, Any]) -> InvestorType:
    """Classify a loosely structured import row into an investor type.

    Field lookups fall back in order (``type``/``investorType``,
    ``name``/``company``/``firm``, ``notes``/``aum``/``description``).
    Rules are checked top to bottom and the first match wins.
    """
    t = _first_text(raw, "type", "investorType", "investor_type")
    n = _first_text(raw, "name", "company", "firm")
    notes = _first_text(raw, "notes", "aum", "description")
    source = raw.get("_source")

    if source == "angel":
        return InvestorType.ANGEL
    if "sovereign" in t or "swf" in t or "sovereign" in notes:
        return InvestorType.INSTITUTIONAL
    if (
        "pension" in t
        or "endowment" in t
        or any(word in n for word in ("university", "foundation", "trs", "pers"))
    ):
        return InvestorType.PENSION_ENDOWMENT
    if "fund of fund" in t or "fof" in t or "private markets" in t:
        return InvestorType.FUND_OF_FUNDS
    if "family office" in t:
        return InvestorType.FAMILY_OFFICE
    if "corporate" in t:
        return InvestorType.CORPORATE_VC
    if "exchange" in t:
        return InvestorType.EXCHANGE_VC
    if any(word in t for word in ("crypto", "web3", "defi", "blockchain")):
        return InvestorType.CRYPTO_VC
    if any(
        word in t
        for word in ("tradfi", "bank", "investment bank", "insurance", "asset management")
    ):
        return InvestorType.TRADFI
    if "individual" in t or "personal" in t:
        return InvestorType.INDIVIDUAL
    if "venture" in t or "vc" in t or "growth" in t:
        return InvestorType.CRYPTO_VC
    if source == "inception":
        return InvestorType.INCEPTION_FUND
    if source == "web3vc":
        return InvestorType.CRYPTO_VC
    return InvestorType.OTHER


def suggest_pitch_angle(investor_type: str) -> str:
    """Return the first pitch angle (in declaration order) suited to *investor_type*."""
    for key, angle in PITCH_ANGLES.items():
        if investor_type in angle.best_for:
            return key
    return DEFAULT_PITCH_ANGLE


# ---------------------------------------------------------------------------
# Engagement scoring
# ---------------------------------------------------------------------------

def calculate_engagement_score(investor: Investor, *, now: datetime | None = None) -> int:
    """Score how engaged an investor is, clamped to ``[0, 100]``."""
    current = _now(now)
    score = ENGAGEMENT_STAGE_POINTS.get(investor.stage, 0)

    if investor.last_contact is not None:
        days = days_since(investor.last_contact, current)
        if days < 7:
            score += 30
        elif days < 14:
            score += 20
        elif days < 30:
            score += 10
        else:
            score -= 10

    if investor.priority == Priority.HIGH:
        score += 15
    elif investor.priority == Priority.MEDIUM:
        score += 5

    score += min(len(investor.activities) * 5, 25)

    if investor.commitment > 0:
        score += 20

    return max(0, min(100, score))


# ---------------------------------------------------------------------------
# Outreach urgency
# ---------------------------------------------------------------------------

def get_outreach_urgency(investor: Investor, *, now: datetime | None = None) -> Urgency | None:
    """Classify whether outreach is due; ``None`` for closed records."""
    if investor.stage in CLOSED_STAGES:
        return None

    if investor.last_contact is None:
        if investor.stage == PipelineStage.OUTREACH_READY or investor.priority == Priority.HIGH:
            return Urgency(level=UrgencyLevel.NOW, label="Ready to contact", color=COLOR_NOW)
        return Urgency(level=UrgencyLevel.SOON, label="Needs research first", color=COLOR_SOON)

    days = days_since(investor.last_contact, _now(now))
    shown = round_half_away(days)

    if investor.stage in (PipelineStage.MEETING_SCHEDULED, PipelineStage.IN_DILIGENCE):
        if days > 7:
            return Urgency(
                level=UrgencyLevel.NOW,
                label=f"{shown}d since last touch — follow up",
                color=COLOR_NOW,
            )
        return Urgency(level=UrgencyLevel.OK, label="Active engagement", color=COLOR_OK)

    if days > 21:
        return Urgency(level=UrgencyLevel.NOW, label=f"{shown}d cold — re-engage", color=COLOR_NOW)
    if days > 14:
        return Urgency(
            level=UrgencyLevel.SOON, label=f"{shown}d — warming needed", color=COLOR_SOON
        )
    return Urgency(level=UrgencyLevel.OK, label=f"{shown}d — on track", color=COLOR_OK)


# ---------------------------------------------------------------------------
# AI-style prioritization
# ---------------------------------------------------------------------------

def _ai_score(investor: Investor, now: datetime) -> tuple[int, list[str]]:
    score = 0
    reasons: list[str] = []

    # Stage momentum
    score += AI_STAGE_WEIGHT.get(investor.stage, 0)
    if investor.stage == PipelineStage.TERM_SHEET:
        reasons.append("🔥 Term sheet stage - close this!")
    elif investor.stage == PipelineStage.IN_DILIGENCE:
        reasons.append("📋 In diligence - keep momentum")
    elif investor.stage == PipelineStage.MEETING_SCHEDULED:
        reasons.append("📅 Meeting scheduled - prepare")

    # Thesis fit
    score += AI_TYPE_FIT.get(investor.type, 0)
    if investor.type in CRYPTO_NATIVE_TYPES:
        reasons.append("🎯 Strong crypto/Web3 thesis fit")

    # Timing
    if investor.last_contact is not None:
        days = days_since(investor.last_contact, now)
        if days > 21 and investor.stage != PipelineStage.IDENTIFIED:
            score += 20
            reasons.append(f"⚠️ {round_half_away(days)} days cold - re-engage now")
        elif days > 14:
            score += 15
            reasons.append(f"⏰ {round_half_away(days)} days - follow up soon")
        elif days < 3:
            score += 10
            reasons.append("✅ Recently engaged - maintain momentum")
    elif investor.stage == PipelineStage.OUTREACH_READY:
        score += 18
        reasons.append("🚀 Ready for first outreach")

    if investor.priority == Priority.HIGH:
        score += 20
        reasons.append("⭐ High priority target")
    elif investor.priority == Priority.MEDIUM:
        score += 8

    if investor.email:
        score += 10
        reasons.append("📧 Email available - can reach out")
    else:
        reasons.append("🔍 Need to find contact info")

    if investor.commitment > 0:
        score += 15
        reasons.append(f"💰 Already committed ${investor.commitment / 1000:.1f}K")

    if len(investor.activities) > 2:
        score += 10
        reasons.append("💬 Active conversation history")

    return score, reasons


def _ai_action(investor: Investor, now: datetime) -> str:
    stage = investor.stage
    if not investor.email:
        return "Find contact → Use Apollo or LinkedIn"
    if stage in (PipelineStage.IDENTIFIED, PipelineStage.RESEARCHING):
        return "Research their portfolio → Craft personalized intro"
    if stage == PipelineStage.OUTREACH_READY:
        return "Send intro email using pitch playbook"
    if stage == PipelineStage.CONTACTED and investor.last_contact is not None:
        days = round_half_away(days_since(investor.last_contact, now))
        return "Send follow-up email" if days > 7 else "Wait for response"
    if stage == PipelineStage.MEETING_SCHEDULED:
        return "Prepare deck & talking points"
    if stage == PipelineStage.IN_DILIGENCE:
        return "Respond to DD questions promptly"
    if stage == PipelineStage.TERM_SHEET:
        return "Review terms & close!"
    return "Review and update status"


def get_ai_prioritized_investors(
    investors: Iterable[Investor],
    *,
    now: datetime | None = None,
    limit: int = MAX_PRIORITIZED,
) -> list[PrioritizedInvestor]:
    """Rank open investors by a weighted heuristic and return the top *limit*.

    Ties keep their input order.
    """
    current = _now(now)
    scored: list[PrioritizedInvestor] = []
    for investor in investors:
        if investor.stage in CLOSED_STAGES:
            continue
        score, reasons = _ai_score(investor, current)
        scored.append(
            PrioritizedInvestor(
                **_record_fields(investor),
                ai_score=score,
                ai_reasons=reasons[:MAX_REASONS],
                ai_action=_ai_action(investor, current),
            )
        )
    scored.sort(key=lambda p: p.ai_score, reverse=True)
    return scored[:limit]


# ---------------------------------------------------------------------------
# Recommendation buckets
# ---------------------------------------------------------------------------

def generate_recommendations(
    investors: Sequence[Investor],
    *,
    now: datetime | None = None,
) -> list[RecommendationBucket]:
    """Group investors into ordered action buckets; empty buckets are omitted."""
    current = _now(now)
    buckets: list[RecommendationBucket] = []

    def add(category: str, action: str, members: list[Investor]) -> None:
        if members:
            buckets.append(
                RecommendationBucket(
                    category=category, action=action, investors=members[:MAX_BUCKET_SIZE]
                )
            )

    early = (PipelineStage.IDENTIFIED, PipelineStage.RESEARCHING, PipelineStage.OUTREACH_READY)
    add(
        "🔴 High Priority — Not Yet Contacted",
        "These should be your first outreach targets",
        [i for i in investors if i.priority == Priority.HIGH and i.stage in early],
    )

    stale = [
        i
        for i in investors
        if i.last_contact is not None
        and i.stage not in CLOSED_STAGES
        and i.stage != PipelineStage.IDENTIFIED
        and days_since(i.last_contact, current) > 14
    ]
    stale.sort(key=lambda i: _aware(i.last_contact))  # type: ignore[arg-type]
    add("⏰ Going Cold — Re-engage Now", "These conversations are cooling off", stale)

    add(
        "⛓ Crypto VCs — Research & Outreach",
        "Check portfolio for Sui/MEV/DeFi infrastructure overlap → warm intro",
        [
            i
            for i in investors
            if i.type == InvestorType.CRYPTO_VC and i.stage == PipelineStage.IDENTIFIED
        ],
    )

    add(
        "🏛 Institutional Targets — FT Pedigree Angle",
        "Lead with Franklin Templeton exit + institutional risk framework",
        [
            i
            for i in investors
            if i.type in INSTITUTIONAL_TYPES
            and i.priority == Priority.HIGH
            and i.stage != PipelineStage.COMMITTED
        ],
    )

    add(
        "👼 Angels — Close the Commitment",
        "These contacts need a specific ask and commitment confirmation",
        [
            i
            for i in investors
            if i.type == InvestorType.ANGEL
            and not i.commitment
            and i.stage != PipelineStage.PASSED
        ],
    )

    add(
        "🚀 Inception Funds — First Check Writers",
        "These funds specialize in pre-seed. Research crypto thesis fit → cold outreach",
        [
            i
            for i in investors
            if i.type == InvestorType.INCEPTION_FUND and i.stage == PipelineStage.IDENTIFIED
        ],
    )

    return buckets


# ---------------------------------------------------------------------------
# Read-side helpers for the dashboard and list views
# ---------------------------------------------------------------------------

def annotate(investor: Investor, *, now: datetime | None = None) -> InvestorView:
    """Attach the derived engagement score and urgency to *investor*."""
    current = _now(now)
    return InvestorView(
        **_record_fields(investor),
        engagement_score=calculate_engagement_score(investor, now=current),
        urgency=get_outreach_urgency(investor, now=current),
    )


def summarize_pipeline(
    investors: Sequence[Investor], *, now: datetime | None = None
) -> PipelineSummary:
    current = _now(now)
    needs_action = 0
    for investor in investors:
        urgency = get_outreach_urgency(investor, now=current)
        if urgency is not None and urgency.level == UrgencyLevel.NOW:
            needs_action += 1
    return PipelineSummary(
        total=len(investors),
        committed_total=sum(
            i.commitment for i in investors if i.stage == PipelineStage.COMMITTED
        ),
        active=sum(
            1
            for i in investors
            if i.stage not in CLOSED_STAGES and i.stage != PipelineStage.IDENTIFIED
        ),
        needs_action=needs_action,
        by_stage={str(k): v for k, v in Counter(i.stage for i in investors).items()},
        by_type={str(k): v for k, v in Counter(i.type for i in investors).items()},
    )


SORT_KEYS = ("name", "engagement", "commitment", "stage")


def filter_investors(
    investors: Iterable[Investor],
    *,
    search: str = "",
    type: str | None = None,
    stage: str | None = None,
    priority: str | None = None,
    source: str | None = None,
    sort: str = "name",
    now: datetime | None = None,
) -> list[Investor]:
    """Filter and sort investors the way the pipeline list view does.

    ``None`` or ``"all"`` disables a filter. *search* matches name, company,
    email and notes case-insensitively.
    """
    result = list(investors)
    if search:
        q = search.lower()
        result = [
            i
            for i in result
            if any(q in (field or "").lower() for field in (i.name, i.company, i.email, i.notes))
        ]
    for attr, wanted in (("type", type), ("stage", stage), ("priority", priority), ("source", source)):
        if wanted and wanted != "all":
            result = [i for i in result if getattr(i, attr) == wanted]

    if sort == "engagement":
        current = _now(now)
        result.sort(key=lambda i: calculate_engagement_score(i, now=current), reverse=True)
    elif sort == "commitment":
        result.sort(key=lambda i: i.commitment, reverse=True)
    elif sort == "stage":
        result.sort(key=lambda i: stage_info(i.stage).order)
    else:
        result.sort(key=lambda i: (i.name or "").lower())
    return result
