"""
Core deliberation engine.
Implements the staged council methodology:
1. Independent opinions - every council model answers concurrently
2. Peer ranking - each model ranks the other models' anonymized answers
3. Chairman synthesis - one model turns opinions and ranking into a verdict

Provider failures are absorbed per call by walking the provider chain; only
an empty stage 1 (QuorumNotMet) or an exhausted chairman chain
(ChairmanFailure) reach the caller.
"""

import asyncio
import logging
import re
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

import config as app_config
from chairman import ChairmanSynthesizer
from config import DEFAULT_OPINION_SCORE, PersonaConfig
from decoding import decode
from errors import ProviderError, QuorumNotMet
from prompts import BuiltPrompt, PromptBuilder, label_for_index, personas_for_gate, playground_personas
from providers import ProviderChain, ProviderFactory
from ranking import aggregate_rankings, filter_ranking, parse_ranking_from_text
from schemas.chat import ChatMessage, ChatRequest
from schemas.council import (
    AggregateRanking,
    CouncilSession,
    DeliberationConfig,
    GateType,
    Opinion,
    PlaygroundFinal,
    PlaygroundResult,
    StageOneResult,
    StageTwoResult,
)

logger = logging.getLogger(__name__)

_SCORE_PATTERN = re.compile(r"score\W{0,3}(\d{1,3}(?:\.\d+)?)", re.IGNORECASE)


# =============================================================================
# Opinion normalization
# =============================================================================

def clamp_score(value: Any, default: int = DEFAULT_OPINION_SCORE) -> int:
    """Round a model-supplied score into [0, 100]; unusable values get ``default``."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if number != number:  # NaN
        return default
    return max(0, min(100, int(round(number))))


def normalize_opinion(content: str, persona: PersonaConfig) -> Opinion:
    """Turn one stage-1 answer into an Opinion.

    Decoded JSON ``{persona, role, opinion, score}`` is preferred; otherwise
    the raw text is the opinion and a ``score: NN`` mention is scraped.
    """
    data = decode(content, expect=dict)
    if data is not None:
        text = str(data.get("opinion") or data.get("content") or "").strip()
        if text:
            return Opinion(
                persona=str(data.get("persona") or persona.name).strip() or persona.name,
                role=str(data.get("role") or persona.role).strip() or persona.role,
                opinion=text,
                score=clamp_score(data.get("score")),
            )

    match = _SCORE_PATTERN.search(content)
    return Opinion(
        persona=persona.name,
        role=persona.role,
        opinion=content.strip(),
        score=clamp_score(match.group(1)) if match else DEFAULT_OPINION_SCORE,
    )


# =============================================================================
# Engine
# =============================================================================

@dataclass
class StageOneOutcome:
    """Stage-1 results in call order, plus what failed and why."""
    results: List[StageOneResult] = field(default_factory=list)
    opinions: List[Opinion] = field(default_factory=list)
    failures: Dict[str, str] = field(default_factory=dict)

    @property
    def label_to_model(self) -> Dict[str, str]:
        return {r.label: r.model_id for r in self.results}


@dataclass
class StageTwoOutcome:
    rankings: List[StageTwoResult] = field(default_factory=list)
    aggregate: List[AggregateRanking] = field(default_factory=list)


class CouncilEngine:
    """Runs council sessions against an explicit DeliberationConfig."""

    def __init__(
        self,
        config: DeliberationConfig,
        chain: Optional[ProviderChain] = None,
        store=None,
        prompt_builder: Optional[PromptBuilder] = None,
    ):
        self.config = config
        self.chain = chain if chain is not None else ProviderFactory.build_chain(config.provider_chain)
        self.store = store
        self.prompts = prompt_builder or PromptBuilder()
        self.chairman = ChairmanSynthesizer(
            self.chain,
            offline_fallback=config.offline_fallback,
            timeout_ms=config.chairman_timeout_ms,
            max_tokens=config.chairman_max_tokens,
            temperature=config.chairman_temperature,
        )

    async def _gather_bounded(self, calls: Sequence) -> List[Tuple[Optional[str], Optional[Exception]]]:
        """Run coroutine factories under the concurrency bound.

        Each slot holds ``(content, None)`` or ``(None, error)`` at the index of
        its call, independent of completion order.
        """
        semaphore = asyncio.Semaphore(self.config.max_concurrency)

        async def guarded(factory):
            async with semaphore:
                try:
                    result = await factory()
                    return result.response.content, None
                except ProviderError as e:
                    return None, e
                except Exception as e:
                    logger.exception("Unexpected error in council call")
                    return None, e

        return await asyncio.gather(*(guarded(call) for call in calls))

    def _request(self, model: str, messages: List[ChatMessage], stage: int) -> ChatRequest:
        if stage == 1:
            timeout, tokens, temperature = (
                self.config.stage1_timeout_ms, self.config.stage1_max_tokens, self.config.stage1_temperature
            )
        else:
            timeout, tokens, temperature = (
                self.config.stage2_timeout_ms, self.config.stage2_max_tokens, self.config.stage2_temperature
            )
        return ChatRequest(
            model=model,
            messages=messages,
            temperature=temperature,
            max_tokens=tokens,
            timeout_ms=timeout,
        )

    # ------------------------------------------------------------------
    # Stage 1
    # ------------------------------------------------------------------

    async def _fan_out(
        self,
        prompts: Sequence[BuiltPrompt],
        personas: Sequence[PersonaConfig],
    ) -> StageOneOutcome:
        models = self.config.council_models
        calls = [
            (lambda model=model, prompt=prompt: self.chain.chat(self._request(model, prompt.messages(), 1)))
            for model, prompt in zip(models, prompts)
        ]
        slots = await self._gather_bounded(calls)

        outcome = StageOneOutcome()
        for model, persona, (content, error) in zip(models, personas, slots):
            if error is not None:
                logger.warning("Stage 1 failed for %s: %s", model, error)
                outcome.failures[model] = str(error)
                continue
            if not content or not content.strip():
                outcome.failures[model] = "empty response"
                continue
            label = label_for_index(len(outcome.results))
            outcome.results.append(StageOneResult(
                model_id=model,
                label=label,
                content=content,
                persona=persona.name,
            ))
            outcome.opinions.append(normalize_opinion(content, persona))

        if not outcome.results:
            raise QuorumNotMet(outcome.failures)

        logger.info(
            "Stage 1: %d/%d council members answered",
            len(outcome.results), len(models),
        )
        return outcome

    async def run_stage1(
        self,
        gate_type: GateType,
        topic: str,
        project_context: Any,
        prior_turns: Optional[Sequence[Any]] = None,
        language: Optional[str] = None,
    ) -> StageOneOutcome:
        """Stage 1: every council model answers independently.

        Raises:
            QuorumNotMet: No model produced a usable answer
        """
        language = language or self.config.language
        roster = personas_for_gate(gate_type)
        personas = [roster[i % len(roster)] for i in range(len(self.config.council_models))]
        prompts = [
            self.prompts.build(gate_type, topic, project_context, prior_turns, language, persona)
            for persona in personas
        ]
        return await self._fan_out(prompts, personas)

    # ------------------------------------------------------------------
    # Stage 2
    # ------------------------------------------------------------------

    async def _rank(self, stage1: Sequence[StageOneResult], prompt_for) -> StageTwoOutcome:
        if not self.config.stage2_enabled or len(stage1) < 2:
            return StageTwoOutcome()

        raters = [(rater, [r for r in stage1 if r.label != rater.label]) for rater in stage1]

        calls = [
            (lambda rater=rater, peers=peers: self.chain.chat(self._request(
                rater.model_id,
                [ChatMessage(role="user", content=prompt_for(peers))],
                2,
            )))
            for rater, peers in raters
        ]
        slots = await self._gather_bounded(calls)

        rankings = []
        for (rater, peers), (content, error) in zip(raters, slots):
            if error is not None:
                logger.info("Stage 2 ranking from %s discarded: %s", rater.model_id, error)
                continue
            parsed = filter_ranking(parse_ranking_from_text(content), [p.label for p in peers])
            if not parsed:
                logger.info("Stage 2 ranking from %s had no usable labels", rater.model_id)
                continue
            rankings.append(StageTwoResult(model_id=rater.model_id, content=content, parsed_ranking=parsed))

        label_to_model = {r.label: r.model_id for r in stage1}
        aggregate = aggregate_rankings(rankings, label_to_model) if rankings else []
        logger.info("Stage 2: %d/%d peer rankings usable", len(rankings), len(stage1))
        return StageTwoOutcome(rankings=rankings, aggregate=aggregate)

    async def run_stage2(self, gate_type: GateType, topic: str, stage1: Sequence[StageOneResult]) -> StageTwoOutcome:
        """Stage 2: anonymized peer ranking.

        Skipped when disabled or with fewer than two stage-1 answers. Failed or
        unparseable rankings are dropped.
        """
        return await self._rank(stage1, lambda peers: self.prompts.build_ranking(gate_type, topic, peers))

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def run_council_session(
        self,
        project_id: str,
        gate_type: GateType,
        topic: str,
        project_context: Any = None,
        prior_turns: Optional[Sequence[Any]] = None,
        language: Optional[str] = None,
    ) -> CouncilSession:
        """Run the full council on a gate review.

        Args:
            project_id: Opaque id of the project under review
            gate_type: Gate under review
            topic: Decision question
            project_context: JSON-serializable project data (redacted before sending)
            prior_turns: Earlier conversation turns, oldest first
            language: Overrides the configured language

        Returns:
            CouncilSession, persisted if a store is attached

        Raises:
            QuorumNotMet: Stage 1 produced nothing
            ChairmanFailure: No chairman verdict; carries the stage-1 opinions
        """
        gate = GateType(gate_type)
        language = language or self.config.language
        logger.info("Council session for %s: %s gate", project_id, gate.value)

        stage1 = await self.run_stage1(gate, topic, project_context, prior_turns, language)
        stage2 = await self.run_stage2(gate, topic, stage1.results)

        chairman_prompt = self.prompts.build_chairman(
            gate, topic, project_context,
            stage1.results, stage1.opinions,
            stage2.aggregate, stage1.label_to_model,
            language,
        )
        verdict = await self.chairman.synthesize(
            self.config.chairman_model,
            chairman_prompt,
            stage1.opinions,
            stage1.results,
            expect_pricing=gate == GateType.STRATEGIC,
            language=language,
        )

        session = CouncilSession(
            id=f"session-{uuid.uuid4().hex[:12]}",
            project_id=project_id,
            gate_type=gate,
            topic=topic,
            opinions=stage1.opinions,
            synthesis=verdict.synthesis,
            decision=verdict.decision,
            pricing=verdict.pricing,
            language=language,
            chairman_model=verdict.model or self.config.chairman_model,
            model_outputs=stage1.results,
            stage2_rankings=stage2.rankings,
            label_to_model=stage1.label_to_model,
            aggregate_rankings=stage2.aggregate,
        )

        if self.store is not None:
            await self.store.append(session)

        logger.info("Council decision for %s: %s", project_id, session.decision.value)
        return session

    async def run_council_playground(self, prompt: str, language: Optional[str] = None) -> PlaygroundResult:
        """Ad hoc council run with generic personas; nothing is persisted.

        Raises:
            QuorumNotMet: Stage 1 produced nothing
            ChairmanFailure: The chairman chain produced no answer
        """
        language = language or self.config.language
        roster = playground_personas()
        personas = [roster[i % len(roster)] for i in range(len(self.config.council_models))]
        prompts = [self.prompts.build_playground(prompt, persona, language) for persona in personas]

        stage1 = await self._fan_out(prompts, personas)
        stage2 = await self._rank(
            stage1.results,
            lambda peers: self.prompts.build_playground_ranking(prompt, peers),
        )

        chairman_prompt = self.prompts.build_playground_chairman(
            prompt, stage1.results, stage2.aggregate, stage1.label_to_model, language,
        )
        final = await self.chairman.answer(self.config.chairman_model, chairman_prompt)

        return PlaygroundResult(
            id=f"playground-{uuid.uuid4().hex[:12]}",
            prompt=prompt,
            stage1=stage1.results,
            stage2=stage2.rankings,
            label_to_model=stage1.label_to_model,
            aggregate_rankings=stage2.aggregate,
            chairman_model=self.config.chairman_model,
            final=PlaygroundFinal(**final),
        )


# =============================================================================
# Convenience functions
# =============================================================================

async def run_council_session(
    project_id: str,
    gate_type: GateType,
    topic: str,
    project_context: Any = None,
    prior_turns: Optional[Sequence[Any]] = None,
    config: Optional[DeliberationConfig] = None,
    store=None,
) -> CouncilSession:
    """Convenience function to run one gate review.

    Args:
        config: Optional configuration (defaults to the current settings)
        store: Optional SessionStore to persist the session into
    """
    if config is None:
        config = app_config.settings.deliberation_config()
    engine = CouncilEngine(config, store=store)
    return await engine.run_council_session(project_id, gate_type, topic, project_context, prior_turns)


async def run_council_playground(
    prompt: str,
    language: Optional[str] = None,
    config: Optional[DeliberationConfig] = None,
) -> PlaygroundResult:
    """Convenience function for an ad hoc playground run."""
    if config is None:
        config = app_config.settings.deliberation_config()
    engine = CouncilEngine(config)
    return await engine.run_council_playground(prompt, language)
