# imtex/gemini_client.py
import asyncio
import logging
import re
from pathlib import Path
from typing import Any, List, Optional

from google import genai
from google.genai import types as genai_types

from imtex.config import Settings
from imtex.errors import UpstreamUnavailable

logger = logging.getLogger(__name__)

PROMPTS_DIR = (Path(__file__).resolve().parent / "prompts")
SYSTEM_FILE = PROMPTS_DIR / "system.md"
PROMPT_FILES = {
    "resume": PROMPTS_DIR / "resume.md",
    "equation": PROMPTS_DIR / "equation.md",
    "table": PROMPTS_DIR / "table.md",
    "general": PROMPTS_DIR / "general.md",
}

# Canned model turn that acknowledges the system primer.
ROLE_ACK = (
    "Understood. I am a LaTeX expert. I will answer with LaTeX only, "
    "inside a single ```latex code block, and I will not invent content."
)

# Cut the content out of ```latex ... ``` / ```tex ... ``` or any other fence
_LATEX_FENCE = re.compile(r"```(?:latex|tex)\s*(.*?)```", re.S | re.I)
_CODE_FENCE = re.compile(r"```[^\n]*\n(.*?)```", re.S)


def _read(path: Path) -> str:
    return path.read_text(encoding="utf-8")


def build_prompt(kind: str, markdown: str) -> str:
    """Task prompt for `kind` followed by the OCR Markdown."""
    instructions = _read(PROMPT_FILES[kind]).strip()
    return (
        f"{instructions}\n\n"
        "## OCR Markdown (source)\n"
        "<<<MARKDOWN\n"
        f"{markdown or ''}\n"
        "MARKDOWN>>>\n"
    )


def extract_latex(text: str) -> str:
    """
    LaTeX from a model answer: a fenced block if there is one, else the whole
    answer trimmed. Nothing is validated.
    """
    if not text:
        return ""
    m = _LATEX_FENCE.search(text)
    if not m:
        m = _CODE_FENCE.search(text)
    if m:
        return m.group(1).strip()
    stripped = text.strip()
    if stripped.startswith("\\documentclass"):
        return stripped
    # Opening fence without a closing one: drop the fence line
    if stripped.startswith("```"):
        stripped = re.sub(r"^```[^\n]*\n?", "", stripped)
    return stripped.strip()


class GeminiClient:
    """Text generation with a primary and a fallback Gemini model."""

    def __init__(self, settings: Settings, client: Optional[Any] = None):
        self.settings = settings
        self._client = client

    @property
    def client(self) -> genai.Client:
        if self._client is None:
            if not self.settings.gemini_api_key:
                raise RuntimeError("GEMINI_API_KEY not set")
            self._client = genai.Client(api_key=self.settings.gemini_api_key)
        return self._client

    def models(self) -> List[str]:
        models = [self.settings.gemini_model]
        fallback = self.settings.gemini_fallback_model
        if fallback and fallback not in models:
            models.append(fallback)
        return models

    def contents(self, prompt: str) -> List[genai_types.Content]:
        """System primer, canned acknowledgement, then the actual prompt."""
        return [
            genai_types.Content(role="user", parts=[genai_types.Part.from_text(text=_read(SYSTEM_FILE))]),
            genai_types.Content(role="model", parts=[genai_types.Part.from_text(text=ROLE_ACK)]),
            genai_types.Content(role="user", parts=[genai_types.Part.from_text(text=prompt)]),
        ]

    async def _call(self, model_name: str, prompt: str) -> str:
        cfg = genai_types.GenerateContentConfig(
            temperature=0.2,
            top_p=0.9,
            max_output_tokens=8192,
        )
        resp = await asyncio.wait_for(
            self.client.aio.models.generate_content(
                model=model_name,
                contents=self.contents(prompt),
                config=cfg,
            ),
            timeout=self.settings.request_timeout,
        )
        raw = getattr(resp, "text", "") or ""
        if not raw.strip():
            raise ValueError(f"{model_name} returned an empty response")
        return raw

    async def generate(self, prompt: str) -> str:
        last_error: Optional[BaseException] = None
        for model_name in self.models():
            try:
                raw = await self._call(model_name, prompt)
                logger.info(f"Gemini {model_name} answered ({len(raw)} chars)")
                return raw
            except Exception as e:
                logger.warning(f"Gemini {model_name} failed: {e!r}")
                last_error = e
        raise UpstreamUnavailable("language model unavailable") from last_error
