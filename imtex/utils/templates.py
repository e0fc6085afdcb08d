# imtex/utils/templates.py
# -*- coding: utf-8 -*-
"""Document skeletons: résumé template, structure-dependent preamble, stub."""

from __future__ import annotations
from pathlib import Path
from typing import List

from imtex.utils.markdown_latex import escape_latex
from imtex.utils.structure import DocumentStructure

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "latex"
RESUME_TEMPLATE = TEMPLATES_DIR / "resume-template.tex"
BODY_PLACEHOLDER = "BODY_PLACEHOLDER"

_BASE_PACKAGES = [
    "\\usepackage[utf8]{inputenc}",
    "\\usepackage[T1]{fontenc}",
    "\\usepackage{lmodern}",
    "\\usepackage{amsmath}",
    "\\usepackage{amssymb}",
    "\\usepackage{graphicx}",
    "\\usepackage{hyperref}",
]

# Macros pandoc bodies use without -s: \tightlist in lists, \pandocbounded
# around every image
_PANDOC_MACROS = (
    "\\providecommand{\\tightlist}{%\n"
    "  \\setlength{\\itemsep}{0pt}\\setlength{\\parskip}{0pt}}\n"
    "\\providecommand{\\pandocbounded}[1]{#1}"
)


def build_preamble(structure: DocumentStructure) -> str:
    """Article preamble with packages picked from the structure flags."""
    packages: List[str] = list(_BASE_PACKAGES)
    if structure.has_tables:
        packages += [
            "\\usepackage{booktabs}",
            "\\usepackage{longtable}",
            "\\usepackage{array}",
            "\\usepackage{calc}",
        ]
    if structure.has_lists:
        packages.append("\\usepackage{enumitem}")
    if structure.is_complex:
        packages.append("\\usepackage{multicol}")

    return (
        "\\documentclass{article}\n"
        + "\n".join(packages)
        + "\n\n"
        + _PANDOC_MACROS
        + "\n\n\\begin{document}\n"
    )


def wrap_document(body: str, structure: DocumentStructure) -> str:
    return build_preamble(structure) + "\n" + (body or "").strip() + "\n\n\\end{document}\n"


def wrap_resume(body: str) -> str:
    template = RESUME_TEMPLATE.read_text(encoding="utf-8")
    return template.replace(BODY_PLACEHOLDER, (body or "").strip())


def stub_document(reason: str) -> str:
    """Minimal valid document used when every rendering path failed."""
    return (
        "\\documentclass{article}\n"
        "\\begin{document}\n"
        "\\section*{Conversion failed}\n"
        "The image was recognised, but no LaTeX rendering could be produced.\n\n"
        f"Reason: {escape_latex(reason)}\n"
        "\\end{document}\n"
    )
