# imtex/utils/typesetter.py
# -*- coding: utf-8 -*-
"""
External typesetter collaborator: pandoc, Markdown in, LaTeX body out.
"""

from __future__ import annotations
import asyncio
import logging
import shutil
import subprocess

from imtex.config import Settings
from imtex.errors import UpstreamUnavailable

logger = logging.getLogger(__name__)

PANDOC_FORMAT_IN = "markdown+tex_math_dollars+pipe_tables"


class PandocTypesetter:
    def __init__(self, settings: Settings):
        self.binary = settings.pandoc_path
        self.timeout = settings.request_timeout

    def _run(self, markdown: str) -> str:
        exe = shutil.which(self.binary)
        if exe is None:
            raise FileNotFoundError(f"{self.binary} not found on PATH")
        proc = subprocess.run(
            # no highlighting: plain verbatim instead of Shaded/Highlighting macros
            [exe, "-f", PANDOC_FORMAT_IN, "-t", "latex", "--wrap=preserve", "--no-highlight"],
            input=markdown,
            capture_output=True,
            text=True,
            timeout=self.timeout,
            check=True,
        )
        return proc.stdout

    async def convert(self, markdown: str) -> str:
        try:
            latex = await asyncio.to_thread(self._run, markdown)
        except subprocess.CalledProcessError as e:
            logger.warning(f"pandoc exited with {e.returncode}: {(e.stderr or '').strip()[:500]}")
            raise UpstreamUnavailable("typesetter failed") from e
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.warning(f"pandoc unavailable: {e}")
            raise UpstreamUnavailable("typesetter failed") from e

        if not latex.strip():
            raise UpstreamUnavailable("typesetter returned no output")
        return latex
