# imtex/utils/postprocess.py
# -*- coding: utf-8 -*-
"""
Lightweight LaTeX post-processing for model (or renderer) output.

- extract_body: keep only what sits between \\begin{document} and \\end{document}
- clean_resume_latex: drop blacklisted preamble/command lines, one \\item per
  line, blank line before each section, then hand over to the résumé template
- ensure_document: guarantee a closed \\documentclass ... \\end{document}
"""

from __future__ import annotations
import re

from imtex.utils.structure import DocumentStructure
from imtex.utils.templates import wrap_document, wrap_resume

_BEGIN_DOCUMENT = re.compile(r"\\begin\{document\}", re.I)
_END_DOCUMENT = re.compile(r"\\end\{document\}", re.I)
_DOCUMENTCLASS = re.compile(r"\\documentclass\b")

# Résumés get their own preamble; these lines from the model are dropped.
RESUME_BLACKLIST = [
    r"\\documentclass",
    r"\\usepackage",
    r"\\geometry",
    r"\\pagestyle",
    r"\\thispagestyle",
    r"\\fancyhf",
    r"\\fancyhead",
    r"\\fancyfoot",
    r"\\titleformat",
    r"\\titlespacing",
    r"\\setlength",
    r"\\maketitle",
    r"\\title\b",
    r"\\author\b",
    r"\\date\b",
    r"\\begin\{document\}",
    r"\\end\{document\}",
]
_BLACKLIST_LINE = re.compile(r"^\s*(?:" + "|".join(RESUME_BLACKLIST) + r").*$", re.M)


def extract_body(latex: str) -> str:
    if not latex:
        return ""
    begin = _BEGIN_DOCUMENT.search(latex)
    if begin:
        latex = latex[begin.end():]
    end = _END_DOCUMENT.search(latex)
    if end:
        latex = latex[:end.start()]
    return latex.strip()


def is_complete_document(latex: str) -> bool:
    text = (latex or "").strip()
    return bool(_DOCUMENTCLASS.search(text)) and text.endswith("\\end{document}")


def _strip_blacklisted_lines(latex: str) -> str:
    return _BLACKLIST_LINE.sub("", latex)


def _normalize_spacing(latex: str) -> str:
    latex = re.sub(r"\s*\\item\b[ \t]*", "\n\\\\item ", latex)
    latex = re.sub(r"\s*(\\(?:sub)*section\*?\{)", r"\n\n\1", latex)
    latex = re.sub(r"[ \t]+\n", "\n", latex)
    latex = re.sub(r"\n{3,}", "\n\n", latex)
    return latex.strip()


def clean_resume_latex(latex: str) -> str:
    """Body of a résumé with the blacklisted lines removed and spacing fixed."""
    body = extract_body(latex) if _BEGIN_DOCUMENT.search(latex or "") else (latex or "")
    body = _strip_blacklisted_lines(body)
    return _normalize_spacing(body)


def to_resume_document(latex: str) -> str:
    return wrap_resume(clean_resume_latex(latex))


def ensure_document(latex: str, structure: DocumentStructure) -> str:
    """Return `latex` if it is already a closed document, else wrap its body."""
    if is_complete_document(latex):
        return latex.strip() + "\n"
    return wrap_document(extract_body(latex), structure)
