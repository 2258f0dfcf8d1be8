"""Sports assistant agent: question answering over retrieved coaching context.

Same agent machinery as the planning pipeline, different contract: the
answer is a short text plus structured artifacts (an optional training plan,
constraints, rationale and the sources used).
"""

from dataclasses import dataclass
from typing import Any, Literal

from pydantic import BaseModel, Field, ValidationError

from coachweek.agents.base import AgentConfig, AgentResult, BaseAgent, Sleep
from coachweek.agents.errors import SchemaError
from coachweek.llm.gateway import GenerationGateway
from coachweek.rag.context import DEFAULT_EXCERPTS, ContextFetcher, fetch_context_safely

NO_CONTEXT = "Aucun contexte spécifique fourni."


class SessionZones(BaseModel):
    z1_endurance: float = 0.0
    z2_threshold: float = 0.0
    z3_max: float = 0.0
    sprint: float = 0.0


class TrainingSession(BaseModel):
    day: str
    session_type: str
    description: str
    intensity: str = ""
    volume_km: float = 0.0
    zones_km: SessionZones = Field(default_factory=SessionZones)


class TrainingPlanArtifact(BaseModel):
    duration_weeks: int = 1
    weekly_volume_km: float = 0.0
    weekly_sessions: list[TrainingSession] = Field(default_factory=list)


class SourceReference(BaseModel):
    title: str
    type: Literal["scientific_paper", "coaching_methodology", "expert_guideline"] = "coaching_methodology"
    confidence_level: Literal["high", "medium", "low"] = "medium"


class Artifacts(BaseModel):
    discipline: str = ""
    objective: str = ""
    training_plan: TrainingPlanArtifact
    constraints: list[str] = Field(default_factory=list)
    scientific_rationale: list[str] = Field(default_factory=list)
    sources: list[SourceReference] = Field(default_factory=list)


class SportsAnswer(BaseModel):
    content: str
    artifacts: Artifacts


@dataclass(frozen=True)
class SportsQuestion:
    query: str
    context: str = ""
    discipline: str | None = None


SYSTEM_PROMPT = """You are a structured RAG agent specialized in sports training planning and scientific coaching.

You MUST return a single valid JSON object and nothing else, matching this schema:
{
  "content": string,
  "artifacts": {
    "discipline": string,
    "objective": string,
    "training_plan": {
      "duration_weeks": integer,
      "weekly_volume_km": number,
      "weekly_sessions": [
        {
          "day": string,
          "session_type": string,
          "description": string,
          "intensity": string,
          "volume_km": number,
          "zones_km": {"z1_endurance": number, "z2_threshold": number, "z3_max": number, "sprint": number}
        }
      ]
    },
    "constraints": [string],
    "scientific_rationale": [string],
    "sources": [
      {
        "title": string,
        "type": "scientific_paper" | "coaching_methodology" | "expert_guideline",
        "confidence_level": "high" | "medium" | "low"
      }
    ]
  }
}

RAG discipline:
- Prioritize retrieved documents over general knowledge
- Never invent sources
- If no document is available, return an empty "sources" array and state the limitation in "content"

Use neutral, scientific language. No emojis, no motivational speech, no speculative medical claims."""


class SportsAssistantAgent(BaseAgent[SportsQuestion, SportsAnswer]):
    def __init__(self, gateway: GenerationGateway, config: AgentConfig | None = None, sleep: Sleep | None = None):
        super().__init__(
            gateway,
            config
            or AgentConfig(
                name="SportsAssistantAgent",
                temperature=0.1,
                max_tokens=2000,
                system_prompt=SYSTEM_PROMPT,
            ),
            sleep,
        )

    def build_prompt(self, agent_input: SportsQuestion) -> str:
        discipline = f"DISCIPLINE: {agent_input.discipline}\n\n" if agent_input.discipline else ""
        return f"""{discipline}CONTEXTE (RAG):
{agent_input.context or NO_CONTEXT}

QUESTION UTILISATEUR:
{agent_input.query}"""

    def parse_response(self, payload: Any, agent_input: SportsQuestion) -> SportsAnswer:
        if not isinstance(payload, dict) or not payload.get("content") or not isinstance(payload.get("artifacts"), dict):
            raise SchemaError("Missing top-level fields (content, artifacts)")
        if "training_plan" not in payload["artifacts"]:
            raise SchemaError("Missing 'artifacts.training_plan'")
        try:
            return SportsAnswer.model_validate(payload)
        except ValidationError as e:
            raise SchemaError(f"Sports answer does not match schema: {e.error_count()} error(s)") from e


async def answer_question(
    query: str,
    gateway: GenerationGateway,
    *,
    fetcher: ContextFetcher | None = None,
    discipline: str | None = None,
    perform_rag: bool = True,
    k: int = DEFAULT_EXCERPTS,
) -> AgentResult[SportsAnswer]:
    """Answer a coaching question, grounded on retrieved context when available.

    Raises:
        ValueError: If the query is empty
    """
    if not query or not query.strip():
        raise ValueError("Query is required")
    context = await fetch_context_safely(fetcher, query, k) if perform_rag else ""
    agent = SportsAssistantAgent(gateway)
    return await agent.execute(SportsQuestion(query=query.strip(), context=context, discipline=discipline))
