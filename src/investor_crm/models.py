"""Data models and taxonomies for the fundraising pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field, field_validator

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class InvestorType(StrEnum):
    ANGEL = "angel"
    CRYPTO_VC = "crypto-vc"
    INSTITUTIONAL = "institutional"
    FUND_OF_FUNDS = "fund-of-funds"
    CORPORATE_VC = "corporate-vc"
    INCEPTION_FUND = "inception-fund"
    FAMILY_OFFICE = "family-office"
    PENSION_ENDOWMENT = "pension-endowment"
    EXCHANGE_VC = "exchange-vc"
    TRADFI = "tradfi"
    INDIVIDUAL = "individual"
    OTHER = "other"


class PipelineStage(StrEnum):
    IDENTIFIED = "identified"
    RESEARCHING = "researching"
    OUTREACH_READY = "outreach-ready"
    CONTACTED = "contacted"
    MEETING_SCHEDULED = "meeting-scheduled"
    IN_DILIGENCE = "in-diligence"
    TERM_SHEET = "term-sheet"
    COMMITTED = "committed"
    PASSED = "passed"


class Priority(StrEnum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class UrgencyLevel(StrEnum):
    NOW = "now"
    SOON = "soon"
    OK = "ok"


# ---------------------------------------------------------------------------
# Display metadata
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TypeInfo:
    label: str
    color: str
    icon: str


@dataclass(frozen=True)
class StageInfo:
    label: str
    color: str
    order: int


@dataclass(frozen=True)
class PitchAngle:
    key: str
    label: str
    description: str
    best_for: tuple[str, ...]
    key_slides: tuple[int, ...]
    talking_points: tuple[str, ...]


INVESTOR_TYPES: dict[str, TypeInfo] = {
    InvestorType.ANGEL: TypeInfo("Angel", "#10B981", "👼"),
    InvestorType.CRYPTO_VC: TypeInfo("Crypto/Web3 VC", "#8B5CF6", "⛓"),
    InvestorType.INSTITUTIONAL: TypeInfo("Institutional / SWF", "#3B82F6", "🏛"),
    InvestorType.FUND_OF_FUNDS: TypeInfo("Fund of Funds", "#F59E0B", "📊"),
    InvestorType.CORPORATE_VC: TypeInfo("Corporate VC", "#EF4444", "🏢"),
    InvestorType.INCEPTION_FUND: TypeInfo("Inception Stage Fund", "#EC4899", "🚀"),
    InvestorType.FAMILY_OFFICE: TypeInfo("Family Office", "#14B8A6", "🏠"),
    InvestorType.PENSION_ENDOWMENT: TypeInfo("Pension / Endowment", "#6366F1", "🎓"),
    InvestorType.EXCHANGE_VC: TypeInfo("Exchange VC", "#F97316", "💱"),
    InvestorType.TRADFI: TypeInfo("TradFi / Banks", "#64748B", "🏦"),
    InvestorType.INDIVIDUAL: TypeInfo("Individual", "#A3A3A3", "👤"),
    InvestorType.OTHER: TypeInfo("Other", "#737373", "📋"),
}

PIPELINE_STAGES: dict[str, StageInfo] = {
    PipelineStage.IDENTIFIED: StageInfo("Identified", "#94A3B8", 0),
    PipelineStage.RESEARCHING: StageInfo("Researching", "#A78BFA", 1),
    PipelineStage.OUTREACH_READY: StageInfo("Outreach Ready", "#60A5FA", 2),
    PipelineStage.CONTACTED: StageInfo("Contacted", "#FBBF24", 3),
    PipelineStage.MEETING_SCHEDULED: StageInfo("Meeting Scheduled", "#FB923C", 4),
    PipelineStage.IN_DILIGENCE: StageInfo("In Diligence", "#F472B6", 5),
    PipelineStage.TERM_SHEET: StageInfo("Term Sheet", "#34D399", 6),
    PipelineStage.COMMITTED: StageInfo("Committed", "#10B981", 7),
    PipelineStage.PASSED: StageInfo("Passed", "#EF4444", 8),
}

UNKNOWN_STAGE = StageInfo("Unknown", "#737373", 0)

DEFAULT_PITCH_ANGLE = "neutral-auction"

# Declaration order matters: suggest_pitch_angle takes the first match.
PITCH_ANGLES: dict[str, PitchAngle] = {
    angle.key: angle
    for angle in (
        PitchAngle(
            key="jito-for-sui",
            label="Jito for Sui",
            description="MEV infrastructure parallel: Jito went 0→90% on Solana, we're day 1 on Sui",
            best_for=(InvestorType.CRYPTO_VC, InvestorType.EXCHANGE_VC),
            key_slides=(3, 6, 8, 11),
            talking_points=(
                "SIP-19 live: validators auto-accept tips, zero adoption grind",
                "SHIO competitor analysis: $494K Jan MEV from single pipe",
                "Jito went 0→90% in 18 months on Solana",
                "Neutral auction vs direct extraction: we're infrastructure, not a player",
            ),
        ),
        PitchAngle(
            key="order-flow-infrastructure",
            label="Order Flow Infrastructure",
            description="Wall Street pays $3.8B/yr for order flow routing; Sui DEXs pay nothing",
            best_for=(
                InvestorType.INSTITUTIONAL,
                InvestorType.TRADFI,
                InvestorType.FUND_OF_FUNDS,
            ),
            key_slides=(2, 4, 10, 14),
            talking_points=(
                "Built ML hedge fund, sold to Franklin Templeton, built their crypto funds",
                "$3.8B PFOF market in TradFi; DeFi order flow is more valuable and unmonetized",
                "Institutional risk framework: protocol-level data, not block explorer scraping",
                "46 bps cost efficiency vs traditional MEV extraction approaches",
            ),
        ),
        PitchAngle(
            key="execution-market-intelligence",
            label="Execution Market Intelligence",
            description="Protocol-level data platform; MEV is just the first application",
            best_for=(InvestorType.CRYPTO_VC, InvestorType.CORPORATE_VC),
            key_slides=(4, 10, 11, 12),
            talking_points=(
                "3M+ transactions classified with proprietary MEV taxonomy",
                "Own Sui full node: 100% of chain, not sampled, real-time",
                "Jupiter parallel: they built flow classification last, we build it first",
                "Platform play: MEV auction → DEX intelligence → multi-chain expansion",
            ),
        ),
        PitchAngle(
            key="neutral-auction",
            label="Neutral Auction Layer",
            description="We don't compete with DEXs; we're the infrastructure they all route through",
            best_for=(InvestorType.CRYPTO_VC, InvestorType.INCEPTION_FUND),
            key_slides=(4, 7, 8, 16),
            talking_points=(
                "SHIO = player + referee (conflict of interest); we are neutral infrastructure",
                "7 DEXs on Sui: concentrated market, everyone reachable",
                "Zero-friction GTM: 'Send us your flow, we pay you'",
                "Sui Foundation aligned: flagged searcher monopoly as a threat",
            ),
        ),
        PitchAngle(
            key="founder-pedigree",
            label="Founder Pedigree Play",
            description="ML hedge fund → sold to Franklin Templeton → built their crypto funds → now this",
            best_for=(
                InvestorType.ANGEL,
                InvestorType.FAMILY_OFFICE,
                InvestorType.INDIVIDUAL,
                InvestorType.INCEPTION_FUND,
            ),
            key_slides=(9, 15, 16),
            talking_points=(
                "Built & sold ML hedge fund to Franklin Templeton, built their crypto funds",
                "Quant trader at Citadel 2020-2022, order flow & alpha generation specialist",
                "Both founders have built order flow infrastructure at institutional scale",
                "$2M seed at $20M post-money, 24+ months runway",
            ),
        ),
    )
}


def stage_info(stage: str) -> StageInfo:
    """Display metadata for *stage*; unknown stages get a neutral default."""
    return PIPELINE_STAGES.get(stage, UNKNOWN_STAGE)


def type_info(investor_type: str) -> TypeInfo:
    return INVESTOR_TYPES.get(investor_type, INVESTOR_TYPES[InvestorType.OTHER])


# ---------------------------------------------------------------------------
# Core entity
# ---------------------------------------------------------------------------

class Activity(BaseModel):
    """One entry in an investor's append-only engagement log."""

    type: str
    date: datetime = Field(default_factory=lambda: datetime.now(UTC))
    note: str = ""


class Investor(BaseModel):
    """An investor contact tracked through the fundraising pipeline."""

    id: int
    name: str
    company: str = ""
    email: str | None = None
    type: str = InvestorType.OTHER
    stage: str = PipelineStage.IDENTIFIED
    priority: str = Priority.MEDIUM
    pitch_angle: str = DEFAULT_PITCH_ANGLE
    commitment: int = Field(default=0, description="Committed amount in dollars")
    notes: str = ""
    next_action: str = ""
    last_contact: datetime | None = None
    source: str = "manual"
    website: str = ""
    twitter: str = ""
    location: str = ""
    focus: str = ""
    aum: str = ""
    activities: list[Activity] = Field(default_factory=list)

    @field_validator("commitment", mode="before")
    @classmethod
    def _empty_commitment(cls, value: Any) -> Any:
        if value is None or value == "":
            return 0
        return value

    @field_validator(
        "company", "notes", "next_action", "website", "twitter", "location", "focus", "aum",
        mode="before",
    )
    @classmethod
    def _empty_text(cls, value: Any) -> Any:
        if value is None:
            return ""
        return str(value) if isinstance(value, (int, float)) else value


# ---------------------------------------------------------------------------
# Derived views (never persisted)
# ---------------------------------------------------------------------------

class Urgency(BaseModel):
    level: UrgencyLevel
    label: str
    color: str


class InvestorView(Investor):
    """An investor plus the values derived from it at read time."""

    engagement_score: int
    urgency: Urgency | None = None


class PrioritizedInvestor(Investor):
    ai_score: int
    ai_reasons: list[str] = Field(default_factory=list)
    ai_action: str = ""


class RecommendationBucket(BaseModel):
    category: str
    action: str
    investors: list[Investor] = Field(default_factory=list)


class PipelineSummary(BaseModel):
    total: int = 0
    committed_total: int = Field(default=0, description="Sum of commitments at committed stage")
    active: int = 0
    needs_action: int = 0
    by_stage: dict[str, int] = Field(default_factory=dict)
    by_type: dict[str, int] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Persistence events
# ---------------------------------------------------------------------------

class StoreChange(BaseModel):
    """A write observed by a persistence backend."""

    event: str  # "INSERT", "UPDATE", "DELETE"
    investor_id: int
    record: Investor | None = None
    detected_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


# ---------------------------------------------------------------------------
# Adapter payloads
# ---------------------------------------------------------------------------

class ApolloContact(BaseModel):
    name: str = ""
    email: str | None = None
    title: str = ""
    linkedin: str | None = None
    company: str = ""
    score: int = 0


class ContactLookup(BaseModel):
    """Result of an Apollo contact search for one firm."""

    success: bool
    has_email: bool = False
    contact: ApolloContact | None = None
    alternatives: list[ApolloContact] = Field(default_factory=list)
    note: str | None = None
    error: str | None = None
    suggestion: str | None = None


class ResearchBrief(BaseModel):
    who_they_are: str = ""
    opening_line: str = ""
    key_hook: str = ""
    what_to_avoid: str = ""
    subject_line: str = ""


class ResearchResult(BaseModel):
    success: bool
    research: ResearchBrief | None = None
    raw: str = ""
    error: str | None = None
    fallback: ResearchBrief | None = None


class EmailMatch(BaseModel):
    """A sent email attributed to an investor."""

    investor_id: int
    email: str
    subject: str = ""
    date: str = ""
    timestamp: datetime


class GmailSyncResult(BaseModel):
    scanned: int = 0
    matches: list[EmailMatch] = Field(default_factory=list)
    message: str = ""
