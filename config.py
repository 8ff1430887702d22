"""
Configuration for the Boardroom deliberation engine.
Defines settings, default models, gate persona rosters, and stage prompts.
"""

from typing import List, Optional
from pathlib import Path
from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from schemas.council import DeliberationConfig, GateType


# Global env file path (shared across projects)
GLOBAL_ENV_PATH = Path.home() / ".boardroom" / ".env"

DEFAULT_COUNCIL_MODELS = "openai/gpt-4o-mini,anthropic/claude-3.5-sonnet,google/gemini-2.0-flash-001"
DEFAULT_PROVIDER_CHAIN = "openrouter,openai,anthropic,google"


def _split_csv(value: Optional[str]) -> List[str]:
    return [part.strip() for part in (value or "").split(",") if part.strip()]


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(
        env_file=[GLOBAL_ENV_PATH, ".env"],  # Global first, then local override
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # API Keys
    openrouter_api_key: Optional[str] = None
    openai_api_key: Optional[str] = None
    anthropic_api_key: Optional[str] = None
    google_api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("google_api_key", "gemini_api_key"),
    )

    openrouter_base_url: str = "https://openrouter.ai/api/v1"

    # Council
    council_models: str = DEFAULT_COUNCIL_MODELS
    council_chairman_model: Optional[str] = None
    council_stage2_enabled: bool = True
    council_provider_chain: str = DEFAULT_PROVIDER_CHAIN
    council_offline_fallback: bool = True
    council_max_concurrency: int = 8
    council_language: str = "en"

    # Prompt limits
    history_turns: int = 14
    history_chars: int = 1200
    topic_chars: int = 2500
    context_chars: int = 12_000

    # Persistence
    session_store_path: str = "data/council-sessions.json"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    # Defaults
    log_level: str = "INFO"
    max_retries: int = 3
    request_timeout: int = 120

    @property
    def model_list(self) -> List[str]:
        return _split_csv(self.council_models)

    @property
    def provider_chain(self) -> List[str]:
        return _split_csv(self.council_provider_chain)

    def deliberation_config(self) -> DeliberationConfig:
        """Freeze the current settings into an explicit engine configuration."""
        models = self.model_list
        chairman = (self.council_chairman_model or "").strip() or (models[0] if models else "")
        return DeliberationConfig(
            council_models=models,
            chairman_model=chairman,
            stage2_enabled=self.council_stage2_enabled,
            max_concurrency=self.council_max_concurrency,
            provider_chain=self.provider_chain,
            offline_fallback=self.council_offline_fallback,
            language="tr" if self.council_language.lower().startswith("tr") else "en",
        )


settings = Settings()


def reload_settings() -> Settings:
    """Re-read environment and .env files into the module-level settings."""
    global settings
    settings = Settings()
    return settings


# ==============================================
# Default Model Mappings
# ==============================================

# Single-vendor fallback defaults, used when a router id can't be mapped
DIRECT_MODELS = {
    "openai": "gpt-4o-mini",
    "anthropic": "claude-sonnet-4-20250514",
    "google": "gemini-2.0-flash",
}

# Router id prefix -> provider that can serve it directly
VENDOR_PREFIXES = {
    "openai": "openai",
    "anthropic": "anthropic",
    "google": "google",
}


# ==============================================
# Gate Persona Rosters
# ==============================================

class PersonaConfig:
    """A council seat: who speaks and what they look at."""

    def __init__(self, name: str, role: str, focus: str):
        self.name = name
        self.role = role
        self.focus = focus

    def __repr__(self) -> str:
        return f"PersonaConfig({self.name!r}, {self.role!r})"


GATE_PERSONAS = {
    GateType.STRATEGIC: [
        PersonaConfig("Pricing", "Pricing Strategist", "Setup fee, monthly retainer, usage-based items, margins"),
        PersonaConfig("Scope", "Scope Analyst", "Deliverables, scope boundaries, assumptions, timeline"),
        PersonaConfig("Growth", "Revenue Lead", "Positioning, value proposition, upsell path, closing"),
    ],
    GateType.RISK: [
        PersonaConfig("Security", "Security Officer", "Credentials and secrets handling, access control, data exposure"),
        PersonaConfig("Compliance", "Compliance Advisor", "Privacy, PII, contracts, regulatory exposure"),
        PersonaConfig("Architecture", "Systems Architect", "Integrations, failure modes, test plan, rollback, monitoring"),
    ],
    GateType.LAUNCH: [
        PersonaConfig("Operations", "Operations Lead", "Go-live checklist, monitoring and alerting, support handover"),
        PersonaConfig("Quality", "QA Lead", "Test coverage including failure scenarios, acceptance criteria"),
        PersonaConfig("Growth", "Revenue Lead", "Launch messaging, client onboarding, first measurable result"),
    ],
    GateType.POST_MORTEM: [
        PersonaConfig("Delivery", "Delivery Reviewer", "What shipped versus what was promised, timeline slips"),
        PersonaConfig("Risk", "Risk Advisor", "Incidents, near misses, root causes, missing safeguards"),
        PersonaConfig("Client", "Client Success Lead", "Client satisfaction, retention, renewal and upsell signals"),
    ],
}

# Generic roster for ad hoc playground runs
PLAYGROUND_PERSONAS = [
    PersonaConfig("Strategy", "Strategy Member", "Offer/packages, positioning, pricing, value proposition"),
    PersonaConfig("Risk", "Risk Member", "Security, privacy, realism, edge cases, avoiding over-promises"),
    PersonaConfig("Ops", "Ops Member", "Delivery plan, checklist, testing/monitoring, maintenance cost"),
    PersonaConfig("Growth", "Growth Member", "ICP, channels, outreach messages, pitch, closing"),
]

GATE_ASKS = {
    GateType.STRATEGIC: (
        "Give your best critique and recommendation. Include a concrete pricing suggestion "
        "(currency + one-time setup + monthly retainer + any usage-based items), plus key "
        "assumptions and scope boundaries."
    ),
    GateType.RISK: (
        "Give your best critique and recommendation. Include concrete risks, a test plan, "
        "credential/secrets handling, rollback, and monitoring."
    ),
    GateType.LAUNCH: (
        "Give your best critique and recommendation. Say whether this is ready to go live "
        "and what must be true first."
    ),
    GateType.POST_MORTEM: (
        "Give your best critique and recommendation. Name what went well, what went wrong, "
        "and what to change next time."
    ),
}

LANGUAGE_DIRECTIVES = {
    "en": "Write in English.",
    "tr": "Türkçe yaz.",
}


# ==============================================
# Stage Prompts
# ==============================================

STAGE_PROMPTS = {
    "member_system": """{language_directive}
You are a member of a Management Board reviewing a {gate_type} Gate.
Be direct, practical, minimal jargon, and flag risks.

The board for this gate:
{roster}

You speak as: {persona} ({role}). Focus: {focus}.
Respond ONLY from your seat's perspective.""",

    "member_user": """Gate: {gate_type}
Topic: {topic}
Project Context (redacted): {context}

{ask}

Return ONLY a JSON object:
{{"persona": "{persona}", "role": "{role}", "opinion": "<max 6 short sentences>", "score": <0-100 confidence that this should proceed>}}""",

    "stage2_ranking": """You are evaluating different council member critiques for the following gate review.

Gate: {gate_type}
Topic: {topic}

Here are the responses from other council members (anonymized):

{responses}

Your task:
1. Evaluate each response individually (what it does well vs poorly).
2. Rank them from best to worst.

Return ONLY a JSON object whose "ranking" lists every label above, best first:
{{"ranking": [{example}]}}

If you cannot produce JSON, end with the line "FINAL RANKING:" followed by a numbered list
(e.g. "1. Model B").""",

    "chairman_system": """{language_directive}
You are the Chairman of the Management Board. Synthesize the council into a single decision.
Output ONLY valid JSON.""",

    "chairman_user": """Gate: {gate_type}
Topic: {topic}
Project Context (redacted): {context}

STAGE 1 - Council Opinions:
{opinions}

STAGE 2 - Aggregate Peer Ranking (best first):
{ranking}

Return ONLY valid JSON (no markdown, no code fences, no extra keys).
Constraints: synthesis max 6 short sentences{pricing_constraints}.

Required schema:
{{
  "synthesis": "string",
  "decision": "Approved|Rejected|Needs Revision"{pricing_schema}
}}

If unsure, set decision to "Needs Revision".""",

    "chairman_pricing_schema": """,
  "pricing": {"currency": "USD", "lineItems": [{"label": "string", "amount": 0, "cadence": "One-Time|Monthly|Usage", "notes": "string"}], "assumptions": ["string"]}""",

    "chairman_pricing_constraints": "; pricing.lineItems max 6 items; pricing.assumptions max 6 items",

    "playground_member_system": """{language_directive}
You are a Management Board member: {role}.
Focus: {focus}.
Rules: low-jargon, practical, no fluff.
Respond ONLY from your role (max 10 bullets).
If pricing/revenue: include numbers + assumptions.""",

    "playground_ranking": """You are evaluating different responses to the following question:

Question: {prompt}

Here are the responses from other models (anonymized):

{responses}

Your task:
1. Evaluate each response individually.
2. Rank them from best to worst.

Return ONLY a JSON object whose "ranking" lists every label above, best first:
{{"ranking": [{example}]}}""",

    "playground_chairman_system": """{language_directive}
Low-jargon, direct, and practical for an agency owner.
Output format: title + sections (Offer, Pricing/Revenue, Risks, 7-Day Plan).
No fluff; state assumptions; include numbers.""",

    "playground_chairman_user": """You are the Chairman of an LLM Council. Multiple AI models have answered a question and then ranked each other's answers.

Original Question: {prompt}

STAGE 1 - Individual Responses:
{responses}

STAGE 2 - Aggregate Peer Ranking (best first):
{ranking}

Synthesize all of this into a single, comprehensive, accurate answer. Provide ONLY the final answer text.""",
}


# ==============================================
# Thresholds and Limits
# ==============================================

# Score used when a stage-1 answer carries no usable number
DEFAULT_OPINION_SCORE = 75

# Offline chairman verdict (last link of the chairman chain)
OFFLINE_SYNTHESIS = {
    "en": (
        "Automated council unavailable. Proceed only after a manual review: lock scope, "
        "define a credential checklist, and run a test execution before go-live."
    ),
    "tr": (
        "Otomatik kurul kullanılamıyor. Manuel incelemeden sonra ilerle: kapsamı kilitle, "
        "credential checklist çıkar, canlıya almadan önce test çalıştır."
    ),
}
