# imtex/pipeline.py
# -*- coding: utf-8 -*-
"""
End-to-end conversion: image -> OCR Markdown -> structure -> LaTeX.

The stages run strictly one after another; every piece of per-request state
lives inside Converter.convert().
"""

from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol, Union

from imtex.config import DOCUMENT_TYPE_HINTS, Settings
from imtex.errors import ImtexError, InputInvalid, UpstreamUnavailable
from imtex.gemini_client import GeminiClient
from imtex.mistral_client import MistralOCR, OcrResult, image_reference
from imtex.strategy import TextGenerator, Typesetter, select
from imtex.utils.structure import DocumentStructure, classify, compute_confidence
from imtex.utils.typesetter import PandocTypesetter

logger = logging.getLogger(__name__)

GENERIC_FAILURE = "failed to process document structure"


class OcrService(Protocol):
    async def process(self, image_ref: str) -> OcrResult: ...


@dataclass
class ConversionResult:
    latex_document: str
    structure: DocumentStructure
    confidence: float
    strategy: str = "rule-based"
    degraded: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "latexDocument": self.latex_document,
            "structureMetadata": self.structure.to_dict(),
            "confidence": self.confidence,
            "documentType": self.structure.document_type or "general",
            "strategy": self.strategy,
            "degraded": self.degraded,
        }


class Converter:
    def __init__(
        self,
        settings: Settings,
        ocr: Optional[OcrService] = None,
        llm: Optional[TextGenerator] = None,
        typesetter: Optional[Typesetter] = None,
    ):
        self.settings = settings
        self.ocr = ocr or MistralOCR(settings)
        if llm is None and settings.llm_enabled:
            llm = GeminiClient(settings)
        self.llm = llm
        if typesetter is None and settings.enable_pandoc:
            typesetter = PandocTypesetter(settings)
        self.typesetter = typesetter

    async def convert(
        self,
        image: Union[bytes, str],
        document_type: str = "auto",
        mime_type: Optional[str] = None,
    ) -> ConversionResult:
        hint = (document_type or "auto").strip().lower()
        if hint not in DOCUMENT_TYPE_HINTS:
            raise InputInvalid(f"unknown document type: {document_type}")
        image_ref = image_reference(image, mime_type)

        try:
            ocr = await self.ocr.process(image_ref)
        except Exception as e:
            logger.error(f"OCR failed: {e!r}")
            raise UpstreamUnavailable(GENERIC_FAILURE) from e

        try:
            structure = classify(ocr.markdown, ocr.layout_hints, hint)
            logger.info(f"Structure: {structure.to_dict()}")
            rendering = await select(ocr.markdown, structure, llm=self.llm, typesetter=self.typesetter)
        except ImtexError:
            raise
        except Exception as e:
            logger.exception("Conversion failed after OCR")
            raise UpstreamUnavailable(GENERIC_FAILURE) from e

        if rendering.degraded:
            logger.warning(f"Returning degraded document (strategy={rendering.strategy})")

        return ConversionResult(
            latex_document=rendering.latex,
            structure=structure,
            confidence=compute_confidence(structure),
            strategy=rendering.strategy,
            degraded=rendering.degraded,
        )
