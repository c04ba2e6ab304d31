"""
Journal analysis agent: prompts Gemini (via Vertex AI) for a supportive reflection,
thought patterns and coping strategies, and tolerantly parses what comes back.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Any
import json
import re
import logging

from .config import settings

logger = logging.getLogger(__name__)

try:
    import vertexai
    from vertexai.generative_models import GenerativeModel, GenerationConfig, HarmCategory, HarmBlockThreshold
except Exception:
    vertexai = None  # type: ignore
    GenerativeModel = None  # type: ignore
    GenerationConfig = None  # type: ignore

_vertex_model: Optional["GenerativeModel"] = None

REQUIRED_KEYS = ("supportiveResponse", "identifiedPatterns", "suggestedStrategies")

ANALYSIS_PROMPT = """
Below is a journal entry from someone reflecting on their day.

ENTRY:
"{content}"

Please provide:
1. A supportive response that shows empathy and understanding (max 150 words)
2. Identify any potential negative thought patterns (catastrophizing, black-and-white thinking, etc.) (max 3)
3. Suggest 2-3 specific coping strategies or perspective shifts that might help

Format your response as a valid, parseable JSON object with these keys: supportiveResponse, identifiedPatterns, suggestedStrategies.
Keep all values as simple strings without any special formatting or line breaks inside the strings.
Make sure the JSON is correctly formatted with double quotes around keys and string values.
"""

_FENCE_RE = re.compile(r"```(?:json)?\s*(\{[\s\S]*?\})\s*```", re.IGNORECASE)
_CONTROL_RE = re.compile(r"[\u0000-\u001F\u007F-\u009F]")


@dataclass(frozen=True)
class AnalysisResult:
    """Outcome of parsing a model reply: either ``ok`` or the fixed ``fallback``."""

    status: str
    supportive_response: str
    identified_patterns: List[str] = field(default_factory=list)
    suggested_strategies: List[str] = field(default_factory=list)

    @property
    def is_fallback(self) -> bool:
        return self.status == "fallback"


FALLBACK_ANALYSIS = AnalysisResult(
    status="fallback",
    supportive_response="Thank you for sharing your thoughts. I'm here to support you on your journey.",
    identified_patterns=["Unable to analyze patterns at this time"],
    suggested_strategies=["Take some time for self-care today."],
)


def build_analysis_prompt(content: str) -> str:
    return ANALYSIS_PROMPT.format(content=content)


def _clean_json_text(raw: str) -> str:
    """Strip a markdown fence, control characters and curly quotes from a model reply."""
    text = raw.strip()
    match = _FENCE_RE.search(text)
    if match:
        text = match.group(1)
    elif not text.startswith("{"):
        # Prose around a bare object
        start, end = text.find("{"), text.rfind("}")
        if start != -1 and end > start:
            text = text[start:end + 1]
    text = _CONTROL_RE.sub("", text)
    text = text.replace("‘", "'").replace("’", "'")
    text = text.replace("“", '"').replace("”", '"')
    return text


def _as_string_list(value: Any) -> List[str]:
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        return []
    # Objects or numbers the model nests in a list are dropped, not stringified
    return [item.strip() for item in value if isinstance(item, str) and item.strip()]


def parse_analysis_response(raw: Optional[str]) -> AnalysisResult:
    """Parse a model reply into an AnalysisResult without ever raising.

    Any malformed, partial or empty reply (including a safety block, which
    arrives as empty text) yields FALLBACK_ANALYSIS.
    """
    if not raw or not raw.strip():
        return FALLBACK_ANALYSIS
    cleaned = _clean_json_text(raw)
    try:
        data = json.loads(cleaned)
    except (ValueError, TypeError) as e:
        logger.warning(f"Failed to parse analysis response: {e}; raw={cleaned[:200]!r}")
        return FALLBACK_ANALYSIS
    if not isinstance(data, dict) or any(not data.get(key) for key in REQUIRED_KEYS):
        logger.warning("Analysis response missing required fields")
        return FALLBACK_ANALYSIS

    supportive = data["supportiveResponse"]
    if not isinstance(supportive, str) or not supportive.strip():
        return FALLBACK_ANALYSIS
    patterns = _as_string_list(data["identifiedPatterns"])
    strategies = _as_string_list(data["suggestedStrategies"])
    if not patterns or not strategies:
        return FALLBACK_ANALYSIS
    return AnalysisResult(
        status="ok",
        supportive_response=supportive.strip(),
        identified_patterns=patterns,
        suggested_strategies=strategies,
    )


def _safe_extract_text(gen_result) -> str:
    """Extract text from a Vertex generate_content result without raising.

    Falls back to concatenating candidate content parts if result.text access
    triggers a safety/empty-candidate exception.
    """
    try:
        txt = getattr(gen_result, "text", None)
        if isinstance(txt, str):
            return txt.strip()
    except Exception:
        pass
    try:
        candidates = getattr(gen_result, "candidates", None) or []
        for cand in candidates:
            content = getattr(cand, "content", None)
            parts = getattr(content, "parts", None) or []
            collected = [p.text for p in parts if isinstance(getattr(p, "text", None), str)]
            if collected:
                return "".join(collected).strip()
    except Exception:
        pass
    return ""


def _ensure_vertex_initialized() -> None:
    if vertexai is None:
        raise RuntimeError("google-cloud-aiplatform (vertexai) package not available")
    if settings.gemini_api_key:
        vertexai.init(api_key=settings.gemini_api_key)
    else:
        vertexai.init(project=settings.vertex_project_id, location=settings.vertex_location)


def get_vertex_model() -> "GenerativeModel":
    global _vertex_model
    if _vertex_model is None:
        _ensure_vertex_initialized()
        safety_settings = {
            HarmCategory.HARM_CATEGORY_HARASSMENT: HarmBlockThreshold.BLOCK_MEDIUM_AND_ABOVE,
            HarmCategory.HARM_CATEGORY_HATE_SPEECH: HarmBlockThreshold.BLOCK_MEDIUM_AND_ABOVE,
            HarmCategory.HARM_CATEGORY_SEXUALLY_EXPLICIT: HarmBlockThreshold.BLOCK_MEDIUM_AND_ABOVE,
            HarmCategory.HARM_CATEGORY_DANGEROUS_CONTENT: HarmBlockThreshold.BLOCK_MEDIUM_AND_ABOVE,
        }
        _vertex_model = GenerativeModel(settings.vertex_model_name, safety_settings=safety_settings)
    return _vertex_model


async def generate_analysis_text(prompt: str) -> str:
    """Single round-trip to the model. No retry; errors propagate to the caller."""
    model = get_vertex_model()
    gen_config = GenerationConfig(
        temperature=settings.analysis_temperature,
        max_output_tokens=settings.analysis_max_output_tokens,
    )
    result = await model.generate_content_async(prompt, generation_config=gen_config)
    return _safe_extract_text(result)


async def journal_analysis_agent(content: str) -> AnalysisResult:
    """Analyze one journal entry's text. Always returns a result, never raises."""
    try:
        raw = await generate_analysis_text(build_analysis_prompt(content))
    except Exception as e:
        logger.error(f"Error in journal_analysis_agent: {e}")
        return FALLBACK_ANALYSIS
    return parse_analysis_response(raw)
