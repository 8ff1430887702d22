"""
Governance helpers consumed by the business layer.

Pure functions over finished sessions: what an approval means for the
project's status, and a condensed review for callers that only need the
headline.
"""

from typing import Optional

from pydantic import BaseModel, Field

from schemas.council import CouncilSession, Decision, GateType, Pricing, ProjectStatus

GATE_STATUS = {
    GateType.STRATEGIC: ProjectStatus.PROPOSAL,
    GateType.RISK: ProjectStatus.DEVELOPING,
    GateType.LAUNCH: ProjectStatus.TESTING,
}

CONTEXT_GATES = {
    "proposal": GateType.STRATEGIC,
    "lead": GateType.STRATEGIC,
    "risk": GateType.RISK,
    "launch": GateType.LAUNCH,
    "deployment": GateType.LAUNCH,
    "review": GateType.POST_MORTEM,
}

HIGH_RISK_KEYWORDS = ["critical", "severe", "urgent", "dangerous", "kritik", "ciddi"]
LOW_RISK_KEYWORDS = ["safe", "minimal", "negligible", "straightforward", "güvenli", "basit"]


class GovernanceUpdate(BaseModel):
    """Project changes implied by an approved session."""
    certified: bool = True
    last_score: float
    verdict: Decision
    status: Optional[ProjectStatus] = None


class CouncilReview(BaseModel):
    """Headline view of a session."""
    decision: Decision
    confidence: int = Field(..., ge=0, le=100)
    summary: str
    pricing: Optional[Pricing] = None
    session_id: str


def status_for_decision(gate_type: GateType, decision: Decision) -> Optional[ProjectStatus]:
    """New project status for a gate outcome; None means unchanged.

    Only approvals move a project. Post-Mortem approvals never do.
    """
    if Decision(decision) != Decision.APPROVED:
        return None
    return GATE_STATUS.get(GateType(gate_type))


def governance_update(session: CouncilSession) -> Optional[GovernanceUpdate]:
    """Governance record for an approved session, None otherwise."""
    if session.decision != Decision.APPROVED:
        return None
    return GovernanceUpdate(
        certified=True,
        last_score=session.average_score,
        verdict=session.decision,
        status=status_for_decision(session.gate_type, session.decision),
    )


def extract_council_review(session: CouncilSession) -> CouncilReview:
    return CouncilReview(
        decision=session.decision,
        confidence=int(round(session.average_score)),
        summary=session.synthesis[:300],
        pricing=session.pricing,
        session_id=session.id,
    )


def is_council_approved(review: CouncilReview, min_confidence: int = 70) -> bool:
    return review.decision == Decision.APPROVED and review.confidence >= min_confidence


def gate_type_for_context(context: str) -> GateType:
    """Gate to run for a business use case (proposal, lead, risk, launch, deployment, review)."""
    return CONTEXT_GATES.get(str(context or "").strip().lower(), GateType.STRATEGIC)


def extract_risk_level(synthesis: str) -> str:
    """Rough 'Low' / 'Medium' / 'High' risk read of a synthesis."""
    text = (synthesis or "").lower()

    if "high risk" in text or "yüksek risk" in text:
        return "High"
    if "low risk" in text or "düşük risk" in text:
        return "Low"
    if "medium risk" in text or "orta risk" in text:
        return "Medium"

    if any(k in text for k in HIGH_RISK_KEYWORDS):
        return "High"
    if any(k in text for k in LOW_RISK_KEYWORDS):
        return "Low"
    return "Medium"
