# imtex/strategy.py
# -*- coding: utf-8 -*-
"""
Conversion strategy selector.

With a language model configured (first match wins):

    document_type == resume -> LLM (résumé prompt) -> blacklist clean-up -> résumé template
    has_equations           -> LLM (equation prompt), returned as a full document
    has_tables              -> LLM (table prompt), returned as a full document
    otherwise               -> pandoc, else LLM (general prompt), else stub document

Without one, résumés go through the rule-based renderer and the résumé
clean-up, everything else through pandoc with the rule-based renderer as
fallback.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Optional, Protocol

from imtex.errors import UpstreamUnavailable
from imtex.gemini_client import build_prompt, extract_latex
from imtex.utils.markdown_latex import render
from imtex.utils.postprocess import ensure_document, extract_body, to_resume_document
from imtex.utils.structure import DocumentStructure
from imtex.utils.templates import stub_document, wrap_document

logger = logging.getLogger(__name__)


class TextGenerator(Protocol):
    async def generate(self, prompt: str) -> str: ...


class Typesetter(Protocol):
    async def convert(self, markdown: str) -> str: ...


@dataclass
class Rendering:
    latex: str
    strategy: str
    degraded: bool = False


async def _generate(llm: TextGenerator, kind: str, markdown: str) -> str:
    try:
        raw = await llm.generate(build_prompt(kind, markdown))
    except UpstreamUnavailable:
        raise
    except Exception as e:
        raise UpstreamUnavailable("language model unavailable") from e
    return extract_latex(raw)


async def _typeset(typesetter: Optional[Typesetter], markdown: str, structure: DocumentStructure) -> Optional[str]:
    if typesetter is None:
        return None
    try:
        body = await typesetter.convert(markdown)
    except Exception as e:
        logger.warning(f"Typesetter failed: {e}")
        return None
    return wrap_document(extract_body(body), structure)


async def select(
    markdown: str,
    structure: DocumentStructure,
    llm: Optional[TextGenerator] = None,
    typesetter: Optional[Typesetter] = None,
) -> Rendering:
    if llm is None:
        return await _select_without_llm(markdown, structure, typesetter)

    if structure.document_type == "resume":
        latex = await _generate(llm, "resume", markdown)
        return Rendering(to_resume_document(latex), "llm-resume")

    if structure.has_equations:
        latex = await _generate(llm, "equation", markdown)
        return Rendering(ensure_document(latex, structure), "llm-equation")

    if structure.has_tables:
        latex = await _generate(llm, "table", markdown)
        return Rendering(ensure_document(latex, structure), "llm-table")

    typeset = await _typeset(typesetter, markdown, structure)
    if typeset is not None:
        return Rendering(typeset, "typesetter")

    try:
        latex = await _generate(llm, "general", markdown)
    except UpstreamUnavailable as e:
        logger.error(f"Typesetter and language model both failed: {e}")
        return Rendering(
            stub_document("the typesetter and the language model were both unavailable"),
            "stub",
            degraded=True,
        )
    return Rendering(wrap_document(extract_body(latex), structure), "llm-general")


async def _select_without_llm(
    markdown: str,
    structure: DocumentStructure,
    typesetter: Optional[Typesetter],
) -> Rendering:
    if structure.document_type == "resume":
        return Rendering(to_resume_document(render(markdown)), "rule-based-resume")

    typeset = await _typeset(typesetter, markdown, structure)
    if typeset is not None:
        return Rendering(typeset, "typesetter")
    return Rendering(render(markdown), "rule-based")
