"""
Prompt construction for every council stage.

All user- and project-derived text is clamped and passed through the redactor
before it is placed into a prompt. Templates and persona rosters live in config.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from config import (
    GATE_ASKS,
    GATE_PERSONAS,
    LANGUAGE_DIRECTIVES,
    PLAYGROUND_PERSONAS,
    STAGE_PROMPTS,
    PersonaConfig,
)
from redaction import clamp, redact, redact_context
from schemas.chat import ChatMessage
from schemas.council import AggregateRanking, GateType, Opinion, StageOneResult


@dataclass
class BuiltPrompt:
    """System prompt, user prompt and the sanitized prior turns between them."""
    system: str
    user: str
    history: List[ChatMessage] = field(default_factory=list)

    def messages(self) -> List[ChatMessage]:
        return [
            ChatMessage(role="system", content=self.system),
            *self.history,
            ChatMessage(role="user", content=self.user),
        ]


def personas_for_gate(gate_type: GateType) -> List[PersonaConfig]:
    return GATE_PERSONAS[GateType(gate_type)]


def label_for_index(index: int) -> str:
    """0 -> 'Model A', 25 -> 'Model Z', 26 -> 'Model AA'."""
    letters = ""
    n = index
    while True:
        letters = chr(ord("A") + n % 26) + letters
        n = n // 26 - 1
        if n < 0:
            break
    return f"Model {letters}"


def _format_roster(roster: Sequence[PersonaConfig]) -> str:
    return "\n".join(f"- {p.name} ({p.role}): {p.focus}" for p in roster)


def _format_responses(results: Sequence[StageOneResult]) -> str:
    return "\n\n".join(f"{r.label}:\n{r.content}" for r in results)


def _ranking_example(labels: Sequence[str]) -> str:
    return ", ".join(f'"{label}"' for label in labels)


class PromptBuilder:
    """Builds redacted prompts for stage 1, peer ranking and the chairman."""

    def __init__(
        self,
        history_turns: int = 14,
        history_chars: int = 1200,
        topic_chars: int = 2500,
        context_chars: int = 12_000,
    ):
        self.history_turns = history_turns
        self.history_chars = history_chars
        self.topic_chars = topic_chars
        self.context_chars = context_chars

    @classmethod
    def from_settings(cls, settings) -> "PromptBuilder":
        return cls(
            history_turns=settings.history_turns,
            history_chars=settings.history_chars,
            topic_chars=settings.topic_chars,
            context_chars=settings.context_chars,
        )

    # ------------------------------------------------------------------
    # Sanitizing
    # ------------------------------------------------------------------

    def sanitize_topic(self, topic: str) -> str:
        return redact(clamp(str(topic or "").strip(), self.topic_chars))

    def sanitize_context(self, project_context: Any) -> str:
        return redact_context(project_context, self.context_chars)

    def sanitize_history(self, prior_turns: Optional[Sequence[Any]]) -> List[ChatMessage]:
        """Keep the most recent turns, clamp each, then redact.

        Turns may be ChatMessage instances or ``{"role", "content"}`` dicts;
        anything else, including system and blank turns, is dropped.
        """
        if not prior_turns:
            return []

        history = []
        for turn in list(prior_turns)[-self.history_turns:]:
            if isinstance(turn, ChatMessage):
                role, content = turn.role, turn.content
            elif isinstance(turn, dict):
                role, content = turn.get("role"), turn.get("content")
            else:
                continue
            if role not in ("user", "assistant"):
                continue
            text = clamp(str(content or "").strip(), self.history_chars)
            if not text:
                continue
            history.append(ChatMessage(role=role, content=redact(text)))
        return history

    # ------------------------------------------------------------------
    # Stage 1
    # ------------------------------------------------------------------

    def build(
        self,
        gate_type: GateType,
        topic: str,
        project_context: Any,
        prior_turns: Optional[Sequence[Any]] = None,
        language: str = "en",
        persona: Optional[PersonaConfig] = None,
    ) -> BuiltPrompt:
        """Build the stage-1 prompt for one council seat.

        Args:
            gate_type: Gate under review; selects the persona roster and ask
            topic: Decision question
            project_context: Arbitrary JSON-serializable project data
            prior_turns: Earlier conversation turns, oldest first
            language: 'en' or 'tr'
            persona: Seat to speak as (defaults to the first of the roster)

        Returns:
            BuiltPrompt ready to send
        """
        gate = GateType(gate_type)
        roster = personas_for_gate(gate)
        seat = persona or roster[0]

        system = STAGE_PROMPTS["member_system"].format(
            language_directive=LANGUAGE_DIRECTIVES.get(language, LANGUAGE_DIRECTIVES["en"]),
            gate_type=gate.value,
            roster=_format_roster(roster),
            persona=seat.name,
            role=seat.role,
            focus=seat.focus,
        )
        user = STAGE_PROMPTS["member_user"].format(
            gate_type=gate.value,
            topic=self.sanitize_topic(topic),
            context=self.sanitize_context(project_context),
            ask=GATE_ASKS[gate],
            persona=seat.name,
            role=seat.role,
        )
        return BuiltPrompt(system=system, user=user, history=self.sanitize_history(prior_turns))

    def build_playground(self, prompt: str, persona: PersonaConfig, language: str = "en") -> BuiltPrompt:
        system = STAGE_PROMPTS["playground_member_system"].format(
            language_directive=LANGUAGE_DIRECTIVES.get(language, LANGUAGE_DIRECTIVES["en"]),
            role=persona.role,
            focus=persona.focus,
        )
        return BuiltPrompt(system=system, user=self.sanitize_topic(prompt))

    # ------------------------------------------------------------------
    # Stage 2
    # ------------------------------------------------------------------

    def build_ranking(
        self,
        gate_type: GateType,
        topic: str,
        peers: Sequence[StageOneResult],
    ) -> str:
        """Ranking prompt over anonymized peer answers.

        ``peers`` must already exclude the rater's own answer. Only labels and
        contents are rendered.
        """
        return STAGE_PROMPTS["stage2_ranking"].format(
            gate_type=GateType(gate_type).value,
            topic=self.sanitize_topic(topic),
            responses=_format_responses(peers),
            example=_ranking_example([p.label for p in peers]),
        )

    def build_playground_ranking(self, prompt: str, peers: Sequence[StageOneResult]) -> str:
        return STAGE_PROMPTS["playground_ranking"].format(
            prompt=self.sanitize_topic(prompt),
            responses=_format_responses(peers),
            example=_ranking_example([p.label for p in peers]),
        )

    # ------------------------------------------------------------------
    # Chairman
    # ------------------------------------------------------------------

    @staticmethod
    def format_ranking(
        aggregate: Sequence[AggregateRanking],
        label_to_model: Dict[str, str],
    ) -> str:
        """Re-express the aggregate with anonymized labels."""
        if not aggregate:
            return "(not available)"
        model_to_label = {model: label for label, model in label_to_model.items()}
        lines = []
        for position, entry in enumerate(aggregate, start=1):
            label = model_to_label.get(entry.model, "unknown")
            if entry.average_rank is None:
                lines.append(f"{position}. {label} (not ranked)")
            else:
                lines.append(
                    f"{position}. {label} (average rank {entry.average_rank:.2f}, "
                    f"{entry.rankings_count} votes)"
                )
        return "\n".join(lines)

    def build_chairman(
        self,
        gate_type: GateType,
        topic: str,
        project_context: Any,
        stage1: Sequence[StageOneResult],
        opinions: Sequence[Opinion],
        aggregate: Sequence[AggregateRanking],
        label_to_model: Dict[str, str],
        language: str = "en",
    ) -> BuiltPrompt:
        gate = GateType(gate_type)
        opinion_blocks = []
        for result, opinion in zip(stage1, opinions):
            opinion_blocks.append(
                f"{result.label} - {opinion.persona} ({opinion.role}), score {opinion.score}:\n"
                f"{opinion.opinion}"
            )

        system = STAGE_PROMPTS["chairman_system"].format(
            language_directive=LANGUAGE_DIRECTIVES.get(language, LANGUAGE_DIRECTIVES["en"]),
        )
        user = STAGE_PROMPTS["chairman_user"].format(
            gate_type=gate.value,
            topic=self.sanitize_topic(topic),
            context=self.sanitize_context(project_context),
            opinions="\n\n".join(opinion_blocks),
            ranking=self.format_ranking(aggregate, label_to_model),
            pricing_schema=STAGE_PROMPTS["chairman_pricing_schema"] if gate == GateType.STRATEGIC else "",
            pricing_constraints=STAGE_PROMPTS["chairman_pricing_constraints"] if gate == GateType.STRATEGIC else "",
        )
        return BuiltPrompt(system=system, user=user)

    def build_playground_chairman(
        self,
        prompt: str,
        stage1: Sequence[StageOneResult],
        aggregate: Sequence[AggregateRanking],
        label_to_model: Dict[str, str],
        language: str = "en",
    ) -> BuiltPrompt:
        system = STAGE_PROMPTS["playground_chairman_system"].format(
            language_directive=LANGUAGE_DIRECTIVES.get(language, LANGUAGE_DIRECTIVES["en"]),
        )
        user = STAGE_PROMPTS["playground_chairman_user"].format(
            prompt=self.sanitize_topic(prompt),
            responses=_format_responses(stage1),
            ranking=self.format_ranking(aggregate, label_to_model),
        )
        return BuiltPrompt(system=system, user=user)


def playground_personas() -> List[PersonaConfig]:
    return list(PLAYGROUND_PERSONAS)
