# imtex/utils/structure.py
# -*- coding: utf-8 -*-
"""
Document structure classifier.

classify() turns OCR Markdown (plus optional OCR layout hints and the
caller's document type hint) into an immutable DocumentStructure. It runs
as a fixed sequence of steps; each step returns a new record and may only
strengthen what earlier steps concluded:

  1. tables     2. equations     3. lists
  4. hint widening               5. OCR layout hints
  6. resume detection            7. header-density layout

compute_confidence() is a pure function of the resulting record.
"""

from __future__ import annotations
import re
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Mapping, Optional

LAYOUTS = ("simple", "complex", "multi-column")
DOCUMENT_TYPES = ("resume", "equation", "table", "general")

# ========================================
# PATTERNS
# ========================================

# [ \t] rather than \s: a match must stay on one line
_TABLE_ROW = re.compile(r"^[ \t]*\|?[ \t]*[^|\s][^|\n]*\|[ \t]*[^|\s][^|\n]*", re.M)
_TABLE_SEPARATOR = re.compile(r"^[ \t]*\|?(?:[ \t]*:?-+:?[ \t]*\|)+(?:[ \t]*:?-+:?[ \t]*)?$", re.M)
_EQUATION = re.compile(r"\$\$[\s\S]+?\$\$|\$[^$\n]+?\$")
_LIST_LINE = re.compile(r"^\s*(?:[-*+]|\d+\.)\s+", re.M)
_FUNCTION_CALL = re.compile(r"[A-Za-z]\([A-Za-z]\)")
_HEADER_LINE = re.compile(r"^#", re.M)

RESUME_KEYWORDS = [
    "experience", "education", "skills", "work experience",
    "professional experience", "employment", "qualifications",
    "projects", "certifications", "achievements", "languages",
    "summary", "objective", "profile", "contact",
]

_EMAIL = re.compile(r"[\w.+-]+@[\w-]+(?:\.[\w-]+)+")
_PHONE = re.compile(r"(?:\+?\d{1,3}[\s.-]?)?\(?\d{3}\)?[\s.-]?\d{3}[\s.-]?\d{4}\b")
_MONTH = r"(?:Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Sept|Oct|Nov|Dec)[a-z]*\.?"
_DATE_RANGE = re.compile(
    rf"\b{_MONTH}\s+\d{{4}}\s*(?:-|–|—|to)\s*{_MONTH}\s+\d{{4}}",
    re.I,
)


def _keyword_patterns(keyword: str) -> List[re.Pattern]:
    kw = re.escape(keyword)
    return [
        re.compile(rf"^\s*#{{1,6}}\s*{kw}\s*:?\s*$", re.I | re.M),
        re.compile(rf"^\s*{kw}\s*:", re.I | re.M),
    ]


_KEYWORD_PATTERNS = {kw: _keyword_patterns(kw) for kw in RESUME_KEYWORDS}


# ========================================
# DATA
# ========================================

@dataclass(frozen=True)
class DocumentStructure:
    has_tables: bool = False
    has_equations: bool = False
    has_lists: bool = False
    layout: str = "simple"
    document_type: Optional[str] = None
    raw_tables: Optional[List[Any]] = None
    raw_equations: Optional[List[Any]] = None

    @property
    def is_complex(self) -> bool:
        return self.layout in ("complex", "multi-column")

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "hasTables": self.has_tables,
            "hasEquations": self.has_equations,
            "hasLists": self.has_lists,
            "layout": self.layout,
            "documentType": self.document_type,
        }
        if self.raw_tables is not None:
            data["rawTables"] = self.raw_tables
        if self.raw_equations is not None:
            data["rawEquations"] = self.raw_equations
        return data


def _stronger_layout(current: str, candidate: str) -> str:
    if candidate not in LAYOUTS:
        return current
    return candidate if LAYOUTS.index(candidate) > LAYOUTS.index(current) else current


# ========================================
# RESUME DETECTION
# ========================================

def count_resume_keywords(text: str) -> int:
    return sum(
        1 for patterns in _KEYWORD_PATTERNS.values()
        if any(p.search(text) for p in patterns)
    )


def looks_like_resume(text: str) -> bool:
    """Section-title keywords, contact details and date ranges."""
    keywords = count_resume_keywords(text)
    has_contact = bool(
        _EMAIL.search(text)
        or _PHONE.search(text)
        or "linkedin.com" in text.lower()
    )
    has_date_range = bool(_DATE_RANGE.search(text))

    return (
        keywords >= 2
        or (keywords >= 1 and has_contact)
        or (has_date_range and has_contact)
    )


# ========================================
# CLASSIFICATION STEPS
# ========================================

def _detect_tables(s: DocumentStructure, text: str) -> DocumentStructure:
    found = bool(_TABLE_ROW.search(text)) and bool(_TABLE_SEPARATOR.search(text))
    return replace(s, has_tables=s.has_tables or found)


def _detect_equations(s: DocumentStructure, text: str) -> DocumentStructure:
    return replace(s, has_equations=s.has_equations or bool(_EQUATION.search(text)))


def _detect_lists(s: DocumentStructure, text: str) -> DocumentStructure:
    return replace(s, has_lists=s.has_lists or bool(_LIST_LINE.search(text)))


def _apply_hint(s: DocumentStructure, text: str, hint: str) -> DocumentStructure:
    if hint == "auto" or hint not in DOCUMENT_TYPES:
        return s
    if s.document_type is None:
        s = replace(s, document_type=hint)
    if hint == "table":
        s = replace(s, has_tables=s.has_tables or "|" in text)
    elif hint == "equation":
        widened = "$" in text or bool(_FUNCTION_CALL.search(text))
        s = replace(s, has_equations=s.has_equations or widened)
    elif hint == "resume":
        s = replace(s, layout=_stronger_layout(s.layout, "complex"), document_type="resume")
    return s


def _apply_layout_hints(s: DocumentStructure, hints: Optional[Mapping[str, Any]]) -> DocumentStructure:
    if not isinstance(hints, Mapping):
        return s
    tables = hints.get("tables")
    if isinstance(tables, list) and tables:
        s = replace(s, has_tables=True, raw_tables=list(tables))
    equations = hints.get("equations")
    if isinstance(equations, list) and equations:
        s = replace(s, has_equations=True, raw_equations=list(equations))
    label = hints.get("layout")
    if isinstance(label, str):
        s = replace(s, layout=_stronger_layout(s.layout, label.strip().lower()))
    return s


def _detect_resume(s: DocumentStructure, text: str) -> DocumentStructure:
    if s.document_type is not None or not looks_like_resume(text):
        return s
    return replace(s, document_type="resume", layout=_stronger_layout(s.layout, "complex"))


def _detect_header_density(s: DocumentStructure, text: str) -> DocumentStructure:
    if s.layout != "simple":
        return s
    headers = len(_HEADER_LINE.findall(text))
    total_lines = len(text.split("\n"))
    if headers > 5 and total_lines < 100:
        return replace(s, layout="complex")
    return s


def classify(
    markdown: str,
    layout_hints: Optional[Mapping[str, Any]] = None,
    document_type_hint: str = "auto",
) -> DocumentStructure:
    text = markdown or ""
    s = DocumentStructure()
    s = _detect_tables(s, text)
    s = _detect_equations(s, text)
    s = _detect_lists(s, text)
    s = _apply_hint(s, text, document_type_hint or "auto")
    s = _apply_layout_hints(s, layout_hints)
    s = _detect_resume(s, text)
    s = _detect_header_density(s, text)
    return s


def compute_confidence(structure: DocumentStructure) -> float:
    confidence = 0.9
    if structure.has_tables:
        confidence -= 0.05
    if structure.has_equations:
        confidence -= 0.02
    if structure.is_complex:
        confidence -= 0.10
    if structure.document_type:
        confidence += 0.05
    return round(min(max(confidence, 0.0), 1.0), 4)
