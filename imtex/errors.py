# imtex/errors.py
# -*- coding: utf-8 -*-
"""
Error kinds that may cross the converter boundary.

A degraded rendering is not an error: it is reported through
ConversionResult.degraded and the stub document body.
"""

from __future__ import annotations


class ImtexError(Exception):
    status_code = 500

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class InputInvalid(ImtexError):
    """No image, unsupported media type or unknown document type hint."""
    status_code = 400


class UpstreamUnavailable(ImtexError):
    """OCR, LLM or typesetter failed or timed out."""
    status_code = 500
