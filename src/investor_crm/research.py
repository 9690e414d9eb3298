"""Claude-drafted outreach research for a single investor.

Sends one templated prompt describing the company and the investor to
Claude, then splits the reply into the five sections the prompt asks for.
When no API key is configured, or the API call fails, a canned brief for the
investor's type is returned instead so callers always have something to show.
"""

from __future__ import annotations

import logging
import re

import anthropic

from investor_crm.config import Settings
from investor_crm.models import Investor, InvestorType, ResearchBrief, ResearchResult

logger = logging.getLogger(__name__)


COMPANY_CONTEXT = """\
- Building "Jito for Sui" - MEV auction infrastructure
- Founder Kevin: Built ML hedge fund, sold to Franklin Templeton, built their crypto funds
- Founder Greg: Former Citadel quant trader (2020-2022)
- Raising $2M seed at $20M post-money
- Key differentiator: Neutral auction layer (not competing with DEXs like SHIO does)\
"""

RESEARCH_PROMPT = """\
You are a fundraising advisor for BirdAI, a crypto/DeFi startup building MEV \
infrastructure on Sui blockchain.

ABOUT BIRDAI:
{company_context}

INVESTOR TO RESEARCH:
- Name: {name}
- Company: {company}
- Type: {type}
- Notes: {notes}
- Current Stage: {stage}

Based on this investor's likely background, portfolio, and investment thesis, provide:

1. **WHO THEY ARE** (2-3 sentences about their likely background, what they invest in, \
and why they might care about BirdAI)

2. **OPENING LINE** (A personalized, non-generic cold email opening that would grab their \
attention. Reference something specific about their firm or likely interests.)

3. **KEY HOOK** (The single most compelling thing to say to THIS specific investor based \
on their type/background)

4. **WHAT TO AVOID** (One thing NOT to say or do with this investor type)

5. **SUGGESTED SUBJECT LINE** (For cold email)

Be specific and actionable. No generic advice. If you don't know much about them, make \
educated guesses based on their investor type and company name.\
"""

_SECTION_PATTERNS: dict[str, re.Pattern[str]] = {
    "who_they_are": re.compile(
        r"WHO THEY ARE[*:\s]*([\s\S]*?)(?=\d\.|OPENING LINE|\*\*OPENING)", re.IGNORECASE
    ),
    "opening_line": re.compile(
        r"OPENING LINE[*:\s]*([\s\S]*?)(?=\d\.|KEY HOOK|\*\*KEY)", re.IGNORECASE
    ),
    "key_hook": re.compile(
        r"KEY HOOK[*:\s]*([\s\S]*?)(?=\d\.|WHAT TO AVOID|\*\*WHAT)", re.IGNORECASE
    ),
    "what_to_avoid": re.compile(
        r"WHAT TO AVOID[*:\s]*([\s\S]*?)(?=\d\.|SUGGESTED SUBJECT|\*\*SUGGESTED)", re.IGNORECASE
    ),
    "subject_line": re.compile(r"SUGGESTED SUBJECT LINE[*:\s]*([\s\S]*?)$", re.IGNORECASE),
}


def build_prompt(investor: Investor, company_context: str = COMPANY_CONTEXT) -> str:
    return RESEARCH_PROMPT.format(
        company_context=company_context,
        name=investor.name,
        company=investor.company or "Unknown",
        type=investor.type or "Unknown",
        notes=investor.notes or "None",
        stage=investor.stage or "identified",
    )


def parse_research_response(text: str) -> ResearchBrief:
    """Split a model reply into the five research sections.

    Missing sections come back as empty strings.
    """
    sections: dict[str, str] = {}
    for key, pattern in _SECTION_PATTERNS.items():
        match = pattern.search(text)
        if not match:
            continue
        value = match.group(1).strip().strip("*").strip()
        if key == "subject_line":
            value = re.sub(r"^[\"']|[\"']$", "", value).strip()
        sections[key] = value
    return ResearchBrief(**sections)


def generate_fallback_research(investor: Investor) -> ResearchBrief:
    """Canned research for the investor's type; crypto-VC copy is the default."""
    company = investor.company or "their firm"
    briefs = {
        InvestorType.CRYPTO_VC: ResearchBrief(
            who_they_are=(
                "Likely a crypto-native VC focused on infrastructure and DeFi. They probably "
                "have Solana or L1/L2 exposure and understand MEV dynamics."
            ),
            opening_line=(
                f"\"I noticed {company}'s portfolio includes [Solana/DeFi infrastructure] - "
                "we're building the MEV layer that Sui is missing.\""
            ),
            key_hook=(
                "Lead with the Jito comparison - they'll immediately understand the $2B+ "
                "opportunity."
            ),
            what_to_avoid=(
                "Don't over-explain MEV basics - they know this space. Get to "
                "differentiation fast."
            ),
            subject_line="Jito for Sui - day 1 MEV infrastructure",
        ),
        InvestorType.ANGEL: ResearchBrief(
            who_they_are=(
                "Individual investor, likely values founder relationship and pedigree over "
                "detailed metrics at this stage."
            ),
            opening_line=(
                "\"[Mutual connection] mentioned you back founders with institutional "
                "backgrounds - I sold my ML hedge fund to Franklin Templeton before starting "
                "BirdAI.\""
            ),
            key_hook="Lead with founder pedigree - Franklin Templeton exit + Citadel background.",
            what_to_avoid="Don't send a long deck upfront. Request a quick call first.",
            subject_line="Quick intro - ex-Franklin Templeton founder raising seed",
        ),
        InvestorType.INSTITUTIONAL: ResearchBrief(
            who_they_are=(
                "Large institutional allocator (SWF, pension, endowment). They prioritize risk "
                "management, regulatory clarity, and proven teams."
            ),
            opening_line=(
                f"\"Given {company}'s focus on alternative assets, I wanted to share how we're "
                "bringing institutional-grade infrastructure to DeFi order flow.\""
            ),
            key_hook=(
                "Emphasize the $3.8B PFOF market parallel and institutional risk framework."
            ),
            what_to_avoid=(
                "Don't lead with \"crypto\" or \"tokens\" - lead with infrastructure and order "
                "flow."
            ),
            subject_line="Order flow infrastructure - institutional DeFi opportunity",
        ),
        InvestorType.INCEPTION_FUND: ResearchBrief(
            who_they_are=(
                "Pre-seed/seed specialist. They bet early on teams and markets, expect high "
                "risk/return."
            ),
            opening_line=(
                f"\"{company} writes first checks in crypto infrastructure - we're the first "
                "neutral MEV layer on Sui.\""
            ),
            key_hook="Emphasize being first/early - SIP-19 just went live, we're day 1.",
            what_to_avoid="Don't oversell traction you don't have. They expect early stage.",
            subject_line="First MEV auction on Sui - seed round open",
        ),
    }
    return briefs.get(investor.type, briefs[InvestorType.CRYPTO_VC])


class InvestorResearcher:
    """Drafts outreach research for investors with Claude.

    Usage::

        researcher = InvestorResearcher(settings)
        result = researcher.research(investor)
        print(result.research or result.fallback)
    """

    def __init__(
        self,
        settings: Settings | None = None,
        client: anthropic.Anthropic | None = None,
        company_context: str = COMPANY_CONTEXT,
    ) -> None:
        self._settings = settings or Settings()  # type: ignore[call-arg]
        self._company_context = company_context
        self._anthropic = client
        if self._anthropic is None and self._settings.anthropic_api_key:
            self._anthropic = anthropic.Anthropic(api_key=self._settings.anthropic_api_key)

    def research(self, investor: Investor) -> ResearchResult:
        if self._anthropic is None:
            return ResearchResult(
                success=False,
                error="Anthropic API key not configured",
                fallback=generate_fallback_research(investor),
            )

        try:
            message = self._anthropic.messages.create(
                model=self._settings.claude_model,
                max_tokens=1024,
                messages=[
                    {"role": "user", "content": build_prompt(investor, self._company_context)}
                ],
            )
        except anthropic.APIError as exc:
            logger.error("AI research failed for investor %d: %s", investor.id, exc)
            return ResearchResult(
                success=False,
                error=str(exc),
                fallback=generate_fallback_research(investor),
            )

        content = "".join(block.text for block in message.content if block.type == "text")
        return ResearchResult(
            success=True,
            research=parse_research_response(content),
            raw=content,
        )
