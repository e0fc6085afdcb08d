# imtex/mistral_client.py
import asyncio
import base64
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union

from mistralai import Mistral

from imtex.config import Settings
from imtex.errors import InputInvalid, UpstreamUnavailable

logger = logging.getLogger(__name__)


@dataclass
class OcrResult:
    markdown: str
    layout_hints: Optional[Dict[str, Any]] = field(default=None)


def _b64(img_bytes: bytes) -> str:
    return base64.b64encode(img_bytes).decode("utf-8")


def image_reference(image: Union[bytes, bytearray, memoryview, str], mime_type: Optional[str] = None) -> str:
    """
    Turn an upload into something the OCR API accepts: an https URL is used
    as is, raw bytes become an inline data URI.
    """
    if isinstance(image, (bytes, bytearray, memoryview)):
        data = bytes(image)
        if not data:
            raise InputInvalid("no image provided")
        mime = (mime_type or "image/png").lower()
        if not mime.startswith("image/"):
            raise InputInvalid("invalid file type. only images accepted", status_code=415)
        return f"data:{mime};base64,{_b64(data)}"

    if isinstance(image, str):
        ref = image.strip()
        if ref.startswith(("https://", "http://", "data:image/")):
            return ref
        if ref.startswith("data:"):
            raise InputInvalid("invalid file type. only images accepted", status_code=415)
    raise InputInvalid("no image provided")


def _layout_hints(page: Any) -> Optional[Dict[str, Any]]:
    """Everything the OCR page carries besides the Markdown itself."""
    if page is None:
        return None
    try:
        data = page.model_dump()
    except AttributeError:
        data = dict(page) if isinstance(page, dict) else {}
    data.pop("markdown", None)
    return data or None


class MistralOCR:
    def __init__(self, settings: Settings, client: Optional[Any] = None):
        self.settings = settings
        self._client = client

    @property
    def client(self) -> Mistral:
        if self._client is None:
            if not self.settings.mistral_api_key:
                raise RuntimeError("MISTRAL_API_KEY not set")
            self._client = Mistral(api_key=self.settings.mistral_api_key)
        return self._client

    async def process(self, image_ref: str) -> OcrResult:
        try:
            resp = await asyncio.wait_for(
                self.client.ocr.process_async(
                    model=self.settings.mistral_ocr_model,
                    document={"type": "image_url", "image_url": image_ref},
                ),
                timeout=self.settings.request_timeout,
            )
        except Exception as e:
            logger.error(f"mistral ocr processing failed: {e!r}")
            raise UpstreamUnavailable("failed to process document structure") from e

        pages = getattr(resp, "pages", None) or []
        first = pages[0] if pages else None
        markdown = (getattr(first, "markdown", "") or "") if first is not None else ""
        logger.info(f"OCR returned {len(pages)} page(s), {len(markdown)} chars of markdown")
        return OcrResult(markdown=markdown, layout_hints=_layout_hints(first))
