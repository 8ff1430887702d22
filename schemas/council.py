"""Pydantic schemas for Council data structures."""

from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


Language = Literal["en", "tr"]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class GateType(str, Enum):
    """Decision category; selects personas and the downstream status mapping."""
    STRATEGIC = "Strategic"
    RISK = "Risk"
    LAUNCH = "Launch"
    POST_MORTEM = "Post-Mortem"


class Decision(str, Enum):
    APPROVED = "Approved"
    REJECTED = "Rejected"
    NEEDS_REVISION = "Needs Revision"


class Cadence(str, Enum):
    ONE_TIME = "One-Time"
    MONTHLY = "Monthly"
    USAGE = "Usage"


class ProjectStatus(str, Enum):
    INTAKE = "Intake"
    PROPOSAL = "Proposal"
    DEVELOPING = "Developing"
    TESTING = "Testing"
    LIVE = "Live"


# ==============================================
# Opinions and stage results
# ==============================================

class Opinion(BaseModel):
    """One council member's opinion."""
    model_config = ConfigDict(frozen=True)

    persona: str = Field(..., description="Persona label, e.g. 'Risk Advisor'")
    role: str
    opinion: str
    score: int = Field(..., ge=0, le=100)


class StageOneResult(BaseModel):
    """Raw answer of one model in stage 1, with its anonymized label."""
    model_id: str
    label: str = Field(..., description="Anonymized label, e.g. 'Model A'")
    content: str
    persona: Optional[str] = None


class StageTwoResult(BaseModel):
    """Peer ranking submitted by one model in stage 2."""
    model_id: str
    content: str
    parsed_ranking: List[str] = Field(default_factory=list)


class AggregateRanking(BaseModel):
    """Consensus position of one model across all peer rankings.

    ``average_rank`` is None when nobody ranked the model.
    """
    model: str
    average_rank: Optional[float] = None
    rankings_count: int = Field(default=0, ge=0)


# ==============================================
# Pricing
# ==============================================

class PricingLineItem(BaseModel):
    label: str = Field(..., min_length=1)
    amount: float = Field(..., ge=0)
    cadence: Cadence
    notes: Optional[str] = None

    @field_validator("cadence", mode="before")
    @classmethod
    def _normalize_cadence(cls, value):
        if isinstance(value, Cadence):
            return value
        key = "".join(ch for ch in str(value).lower() if ch.isalpha())
        aliases = {
            "onetime": Cadence.ONE_TIME,
            "setup": Cadence.ONE_TIME,
            "once": Cadence.ONE_TIME,
            "monthly": Cadence.MONTHLY,
            "month": Cadence.MONTHLY,
            "permonth": Cadence.MONTHLY,
            "retainer": Cadence.MONTHLY,
            "usage": Cadence.USAGE,
            "usagebased": Cadence.USAGE,
            "perusage": Cadence.USAGE,
        }
        return aliases.get(key, value)


class Pricing(BaseModel):
    """Pricing breakdown. Totals are always derived from the line items."""
    currency: str = "USD"
    line_items: List[PricingLineItem] = Field(default_factory=list, alias="lineItems")
    total_one_time: float = Field(default=0.0, alias="totalOneTime")
    total_monthly: float = Field(default=0.0, alias="totalMonthly")
    total_first_month: float = Field(default=0.0, alias="totalFirstMonth")
    assumptions: List[str] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("currency", mode="before")
    @classmethod
    def _normalize_currency(cls, value):
        text = str(value or "").strip().upper()
        return text or "USD"

    @model_validator(mode="after")
    def _recompute_totals(self) -> "Pricing":
        one_time = sum(i.amount for i in self.line_items if i.cadence == Cadence.ONE_TIME)
        monthly = sum(i.amount for i in self.line_items if i.cadence == Cadence.MONTHLY)
        self.total_one_time = one_time
        self.total_monthly = monthly
        self.total_first_month = one_time + monthly
        return self


# ==============================================
# Configuration and session records
# ==============================================

class DeliberationConfig(BaseModel):
    """Everything one deliberation needs to know about models and limits."""
    council_models: List[str] = Field(..., min_length=1)
    chairman_model: str = Field(..., min_length=1)
    stage2_enabled: bool = True
    max_concurrency: int = Field(default=8, ge=1)

    stage1_timeout_ms: int = Field(default=25_000, gt=0)
    stage2_timeout_ms: int = Field(default=22_000, gt=0)
    chairman_timeout_ms: int = Field(default=45_000, gt=0)

    stage1_max_tokens: int = Field(default=650, gt=0)
    stage2_max_tokens: int = Field(default=700, gt=0)
    chairman_max_tokens: int = Field(default=1800, gt=0)

    stage1_temperature: float = Field(default=0.2, ge=0.0, le=2.0)
    stage2_temperature: float = Field(default=0.1, ge=0.0, le=2.0)
    chairman_temperature: float = Field(default=0.2, ge=0.0, le=2.0)

    provider_chain: List[str] = Field(default_factory=lambda: ["openrouter"])
    offline_fallback: bool = Field(default=True, description="Append a static offline verdict to the chairman chain")
    language: Language = "en"

    @field_validator("council_models")
    @classmethod
    def _unique_models(cls, value: List[str]) -> List[str]:
        duplicates = sorted({m for m in value if value.count(m) > 1})
        if duplicates:
            raise ValueError(f"duplicate council models: {', '.join(duplicates)}")
        return value


class CouncilSession(BaseModel):
    """Finished deliberation. Immutable once created."""
    model_config = ConfigDict(frozen=True)

    id: str
    project_id: str
    gate_type: GateType
    topic: str
    opinions: List[Opinion] = Field(..., min_length=1)
    synthesis: str
    decision: Decision
    pricing: Optional[Pricing] = None
    created_at: datetime = Field(default_factory=_utcnow)

    language: Language = "en"
    chairman_model: Optional[str] = None
    model_outputs: List[StageOneResult] = Field(default_factory=list)
    stage2_rankings: List[StageTwoResult] = Field(default_factory=list)
    label_to_model: Dict[str, str] = Field(default_factory=dict)
    aggregate_rankings: List[AggregateRanking] = Field(default_factory=list)

    @property
    def average_score(self) -> float:
        return sum(o.score for o in self.opinions) / len(self.opinions)

    def to_markdown(self) -> str:
        """Format session as Markdown."""
        lines = [
            f"# Council Session: {self.gate_type.value} Gate",
            "",
            f"**Topic:** {self.topic}",
            f"**Project:** {self.project_id}",
            f"**Decision:** {self.decision.value}",
            f"**Timestamp:** {self.created_at.isoformat()}",
            "",
            "---",
            "",
            "## Opinions",
            "",
        ]
        for opinion in self.opinions:
            lines.append(f"### {opinion.persona} ({opinion.role}) - {opinion.score}/100")
            lines.append("")
            lines.append(opinion.opinion)
            lines.append("")

        if self.aggregate_rankings:
            lines.extend(["## Peer Ranking", ""])
            for entry in self.aggregate_rankings:
                avg = f"{entry.average_rank:.2f}" if entry.average_rank is not None else "n/a"
                lines.append(f"- {entry.model}: {avg} ({entry.rankings_count} votes)")
            lines.append("")

        if self.pricing:
            lines.extend(["## Pricing", ""])
            for item in self.pricing.line_items:
                lines.append(f"- {item.label}: {item.amount:,.2f} {self.pricing.currency} ({item.cadence.value})")
            lines.append(
                f"- **First month:** {self.pricing.total_first_month:,.2f} {self.pricing.currency}"
            )
            lines.append("")

        lines.extend(["---", "", "## Synthesis", "", self.synthesis])
        return "\n".join(lines)


class PlaygroundFinal(BaseModel):
    model: str
    content: str


class PlaygroundResult(BaseModel):
    """Ad hoc council run; never persisted."""
    id: str
    prompt: str
    stage1: List[StageOneResult] = Field(default_factory=list)
    stage2: List[StageTwoResult] = Field(default_factory=list)
    label_to_model: Dict[str, str] = Field(default_factory=dict)
    aggregate_rankings: List[AggregateRanking] = Field(default_factory=list)
    chairman_model: str
    final: PlaygroundFinal
    created_at: datetime = Field(default_factory=_utcnow)
