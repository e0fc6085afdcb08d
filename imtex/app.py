# imtex/app.py
from datetime import datetime, timezone
from functools import lru_cache
from typing import Optional
import logging

from fastapi import Depends, FastAPI, File, Form, Request, UploadFile
from fastapi.responses import JSONResponse

from imtex.config import configure_logging, load_settings
from imtex.errors import ImtexError, InputInvalid
from imtex.pipeline import Converter

settings = load_settings()
configure_logging(settings.log_level)

app = FastAPI(title="imtex")

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_converter() -> Converter:
    return Converter(settings)


@app.exception_handler(ImtexError)
async def imtex_error_handler(request: Request, exc: ImtexError):
    return JSONResponse({"error": exc.message}, status_code=exc.status_code)


# ---------- API ----------

@app.post("/convert")
async def convert(
    image: Optional[UploadFile] = File(None),
    imageUrl: Optional[str] = Form(None),
    documentType: str = Form("auto"),
    converter: Converter = Depends(get_converter),
):
    if image is not None and image.filename:
        if not (image.content_type or "").startswith("image/"):
            raise InputInvalid("invalid file type. only images accepted", status_code=415)
        payload = await image.read()
        if not payload:
            raise InputInvalid("no image provided")
        result = await converter.convert(payload, documentType, mime_type=image.content_type)
        source_url = None
    elif imageUrl:
        result = await converter.convert(imageUrl, documentType)
        source_url = imageUrl
    else:
        raise InputInvalid("no image provided")

    logger.info(
        f"converted image: type={result.structure.document_type} "
        f"strategy={result.strategy} confidence={result.confidence}"
    )

    resp = result.to_dict()
    resp["processingDetails"] = {
        "imageUrl": source_url,
        "documentTypeHint": documentType,
        "processingTime": datetime.now(timezone.utc).isoformat(),
    }
    return resp


@app.get("/health")
def health():
    return {"ok": True}
