"""
Chairman synthesis: one authoritative verdict from the council's opinions.

The chairman chain is walked link by link; a provider error or an answer that
does not decode into a verdict moves on to the next link.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence

from pydantic import ValidationError

from config import OFFLINE_SYNTHESIS
from decoding import decode
from errors import ChairmanFailure, ProviderChainExhausted
from prompts import BuiltPrompt
from providers.chain import ProviderChain
from providers.static_provider import StaticProvider
from schemas.chat import ChatRequest
from schemas.council import Decision, Opinion, Pricing, StageOneResult

logger = logging.getLogger(__name__)

OFFLINE_MODEL = "offline"


@dataclass
class Verdict:
    """Normalized chairman output."""
    synthesis: str
    decision: Decision
    pricing: Optional[Pricing] = None
    model: Optional[str] = None
    provider: Optional[str] = None


def normalize_decision(value: Any) -> Decision:
    """Fuzzy-match a decision string.

    'approve*' -> Approved, 'reject*' -> Rejected, anything else -> Needs Revision.
    """
    raw = str(value or "").strip()
    for decision in Decision:
        if raw == decision.value:
            return decision
    lowered = raw.lower()
    if "approve" in lowered:
        return Decision.APPROVED
    if "reject" in lowered:
        return Decision.REJECTED
    return Decision.NEEDS_REVISION


def parse_pricing(value: Any) -> Optional[Pricing]:
    """Validate a pricing object leniently; anything invalid is dropped."""
    if not isinstance(value, dict):
        return None
    try:
        pricing = Pricing.model_validate(value)
    except ValidationError as e:
        logger.warning("Dropping invalid pricing from chairman: %s", e.error_count())
        return None
    return pricing if pricing.line_items else None


def parse_verdict(raw: str, expect_pricing: bool = False) -> Optional[Verdict]:
    """Decode a chairman answer into a Verdict, or None when unusable."""
    data = decode(raw, required=("synthesis",))
    if data is None:
        return None

    synthesis = str(data.get("synthesis") or "").strip()
    if not synthesis:
        return None

    pricing = parse_pricing(data.get("pricing")) if expect_pricing else None
    return Verdict(
        synthesis=synthesis,
        decision=normalize_decision(data.get("decision")),
        pricing=pricing,
    )


def offline_verdict_text(language: str = "en") -> str:
    """JSON the static offline provider answers with."""
    return json.dumps({
        "synthesis": OFFLINE_SYNTHESIS.get(language, OFFLINE_SYNTHESIS["en"]),
        "decision": Decision.NEEDS_REVISION.value,
    }, ensure_ascii=False)


class ChairmanSynthesizer:
    """Asks the chairman chain for a verdict."""

    def __init__(
        self,
        chain: ProviderChain,
        offline_fallback: bool = True,
        timeout_ms: int = 45_000,
        max_tokens: int = 1800,
        temperature: float = 0.2,
    ):
        self.chain = chain
        self.offline_fallback = offline_fallback
        self.timeout_ms = timeout_ms
        self.max_tokens = max_tokens
        self.temperature = temperature

    def _chain_for(self, language: str) -> ProviderChain:
        if not self.offline_fallback:
            return self.chain
        return self.chain.with_fallback(StaticProvider(offline_verdict_text(language), model=OFFLINE_MODEL))

    async def synthesize(
        self,
        model: str,
        prompt: BuiltPrompt,
        opinions: Sequence[Opinion],
        stage1: Sequence[StageOneResult],
        expect_pricing: bool = False,
        language: str = "en",
    ) -> Verdict:
        """Walk the chairman chain until one link produces a usable verdict.

        Raises:
            ChairmanFailure: Every link failed; stage-1 opinions ride along
        """
        request = ChatRequest(
            model=model,
            messages=prompt.messages(),
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            timeout_ms=self.timeout_ms,
            response_format={"type": "json_object"},
        )

        try:
            result = await self._chain_for(language).chat(
                request,
                parse=lambda text: parse_verdict(text, expect_pricing),
            )
        except ProviderChainExhausted as e:
            logger.error("Chairman chain exhausted for %s", model)
            raise ChairmanFailure(
                "No chairman provider produced a usable verdict",
                opinions=opinions,
                stage1=stage1,
                errors=e.errors,
            ) from e

        verdict: Verdict = result.parsed
        verdict.model = result.response.model
        verdict.provider = result.provider
        if result.provider == StaticProvider.name:
            logger.warning("Chairman fell back to the offline verdict")
        return verdict

    async def answer(self, model: str, prompt: BuiltPrompt) -> Dict[str, str]:
        """Free-text chairman answer for playground runs."""
        request = ChatRequest(
            model=model,
            messages=prompt.messages(),
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            timeout_ms=self.timeout_ms,
        )
        try:
            result = await self.chain.chat(request)
        except ProviderChainExhausted as e:
            raise ChairmanFailure("No chairman provider answered", errors=e.errors) from e
        return {"model": result.response.model, "content": result.response.content}
