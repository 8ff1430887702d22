"""Pydantic schemas for the deliberation engine."""

from .chat import ChatMessage, ChatRequest
from .council import (
    GateType,
    Decision,
    Cadence,
    ProjectStatus,
    Opinion,
    StageOneResult,
    StageTwoResult,
    AggregateRanking,
    PricingLineItem,
    Pricing,
    DeliberationConfig,
    CouncilSession,
    PlaygroundFinal,
    PlaygroundResult,
)

__all__ = [
    "ChatMessage",
    "ChatRequest",
    "GateType",
    "Decision",
    "Cadence",
    "ProjectStatus",
    "Opinion",
    "StageOneResult",
    "StageTwoResult",
    "AggregateRanking",
    "PricingLineItem",
    "Pricing",
    "DeliberationConfig",
    "CouncilSession",
    "PlaygroundFinal",
    "PlaygroundResult",
]
