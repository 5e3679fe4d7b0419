"""Natural-language to rule/filter generation through the Gemini API.

The model is an untrusted collaborator: its reply is parsed into a
``GenerationResult`` and structural checks happen downstream in
``parse_rule`` / ``parse_filter``. Nothing here touches workspace state.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Sequence, Union

try:
    import google.generativeai as genai
except ModuleNotFoundError:  # pragma: no cover - runtime dependency guard
    genai = None  # type: ignore[assignment]

from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)


class GeneratorDependencyError(Exception):
    """Raised when the generator SDK or its API key is unavailable."""


@dataclass(frozen=True)
class GenerationSuccess:
    payload: dict[str, Any]
    raw_text: str


@dataclass(frozen=True)
class GenerationFailure:
    reason: str
    raw_text: str | None = None


GenerationResult = Union[GenerationSuccess, GenerationFailure]


_LEADING_FENCE = re.compile(r"^```(?:json)?", re.IGNORECASE)
_TRAILING_FENCE = re.compile(r"```$")


def strip_code_fence(text: str) -> str:
    """Remove a markdown fence wrapped around the model reply, if any."""
    cleaned = text.strip()
    cleaned = _LEADING_FENCE.sub("", cleaned, count=1)
    cleaned = _TRAILING_FENCE.sub("", cleaned, count=1)
    return cleaned.strip()


def parse_generated_json(text: Any) -> GenerationResult:
    if not isinstance(text, str) or not text.strip():
        return GenerationFailure(reason="Generator returned an empty response", raw_text=None)
    cleaned = strip_code_fence(text)
    try:
        payload = json.loads(cleaned)
    except ValueError as exc:
        return GenerationFailure(reason=f"Generator returned invalid JSON: {exc}", raw_text=text)
    if not isinstance(payload, dict):
        return GenerationFailure(
            reason=f"Generator returned a JSON {type(payload).__name__}, expected an object",
            raw_text=text,
        )
    return GenerationSuccess(payload=payload, raw_text=text)


RULE_PROMPT_TEMPLATE = """
You convert a natural language sentence into one structured JSON allocation rule.

Allowed rule shapes:

1. Co-run rule
   Shape: {{"type": "coRun", "tasks": ["TaskID1", "TaskID2"]}}
   Sentence: "Tasks T01 and T05 must always run together."
   JSON: {{"type": "coRun", "tasks": ["T01", "T05"]}}

2. Slot restriction rule
   Shape: {{"type": "slot-restriction", "groupType": "client" | "worker", "group": "GroupName", "minCommonSlots": number}}
   Sentence: "Client group Tier1 needs at least 3 common slots."
   JSON: {{"type": "slot-restriction", "groupType": "client", "group": "Tier1", "minCommonSlots": 3}}

3. Load limit rule
   Shape: {{"type": "load-limit", "group": "WorkerGroupName", "maxSlotsPerPhase": number}}
   Sentence: "Workers in DevTeamA can only work on 2 tasks per phase."
   JSON: {{"type": "load-limit", "group": "DevTeamA", "maxSlotsPerPhase": 2}}

Sentence: "{rule_text}"

Reply with the raw JSON object only. No markdown, no explanation.
"""


FILTER_PROMPT_TEMPLATE = """
You convert a natural language search query into a structured JSON filter.

Query: "{query}"

Available columns:
- clients: {clients}
- workers: {workers}
- tasks: {tasks}

Shape:
{{
  "target": "clients" | "workers" | "tasks",
  "filters": [
    {{"field": "column", "operator": "eq" | "neq" | "gt" | "lt" | "gte" | "lte" | "contains", "value": "value"}}
  ]
}}

- "target" is the dataset the query is most likely about.
- Use "contains" for comma-separated list columns such as RequestedTaskIDs or Skills.
- Use "gt", "lt", "gte", "lte" or "eq" for numbers and "eq" for text.

Reply with the raw JSON object only. No markdown, no explanation.
"""


class GeneratorService:
    """Thin client over a Gemini model returning ``GenerationResult`` values."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        model: Any | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._model = model

    @property
    def available(self) -> bool:
        return self._model is not None or (
            genai is not None and bool(self._settings.generator_api_key)
        )

    def _get_model(self) -> Any:
        if self._model is not None:
            return self._model
        if genai is None:
            raise GeneratorDependencyError(
                "google-generativeai is not installed. Install it to enable text generation."
            )
        if not self._settings.generator_api_key:
            raise GeneratorDependencyError(
                "GOOGLE_API_KEY is not configured. Set it to enable text generation."
            )
        genai.configure(api_key=self._settings.generator_api_key)
        self._model = genai.GenerativeModel(
            model_name=self._settings.generator_model,
            generation_config={"temperature": self._settings.generator_temperature},
        )
        return self._model

    def _complete(self, prompt: str) -> GenerationResult:
        model = self._get_model()
        try:
            response = model.generate_content(prompt)
            text = response.text
        except Exception as exc:  # SDK raises a wide range of transport errors
            logger.warning("Generator call failed: %s", exc)
            return GenerationFailure(reason=f"Generator call failed: {exc}")
        result = parse_generated_json(text)
        if isinstance(result, GenerationFailure):
            logger.warning("Discarding generator reply: %s", result.reason)
        return result

    def generate_rule(self, rule_text: str) -> GenerationResult:
        if not rule_text or not rule_text.strip():
            return GenerationFailure(reason="Rule text is required")
        return self._complete(RULE_PROMPT_TEMPLATE.format(rule_text=rule_text.strip()))

    def generate_filter(
        self,
        query: str,
        schemas: Mapping[str, Sequence[str]],
    ) -> GenerationResult:
        if not query or not query.strip():
            return GenerationFailure(reason="Query is required")
        prompt = FILTER_PROMPT_TEMPLATE.format(
            query=query.strip(),
            clients=", ".join(schemas.get("clients", [])) or "(none)",
            workers=", ".join(schemas.get("workers", [])) or "(none)",
            tasks=", ".join(schemas.get("tasks", [])) or "(none)",
        )
        return self._complete(prompt)
