# imtex/utils/markdown_latex.py
# -*- coding: utf-8 -*-
"""
Rule-based Markdown -> LaTeX renderer for OCR output.

Single forward pass over the lines with one line of lookahead (to know when
a table or a block quote ends). Per line, the first matching rule wins:

  1. fenced code (```lang)      -> lstlisting, content copied verbatim
  2. header (# .. ######)       -> section .. subparagraph
  3. list item (-, *, +, N.)    -> itemize / enumerate, nested by indent
  4. table row (contains |)     -> buffered, flushed as booktabs tabular
  5. image ![alt](path)         -> centered figure
  6. block quote (>)            -> quote
  7. display math ($$...$$)     -> equation
  8. anything else              -> paragraph text with inline markup

Every environment opened while rendering is closed before \\end{document}.
"""

from __future__ import annotations
import logging
import re
from typing import List, Optional, Tuple

logger = logging.getLogger(__name__)

PREAMBLE = r"""\documentclass{article}
\usepackage{graphicx}
\usepackage{amsmath}
\usepackage{amssymb}
\usepackage{booktabs}
\usepackage{hyperref}
\usepackage{xcolor}
\usepackage{listings}
\usepackage{multirow}
\usepackage[utf8]{inputenc}
\usepackage[T1]{fontenc}

\title{Converted Document}
\author{Markdown Converter}
\date{\today}

\begin{document}
\maketitle
"""

END_DOCUMENT = "\\end{document}"

# Depths 5 and 6 both map to \subparagraph (article has nothing deeper).
HEADER_COMMANDS = [
    "section", "subsection", "subsubsection",
    "paragraph", "subparagraph", "subparagraph",
]

_ESCAPES = {
    "\\": "\\textbackslash{}",
    "&": "\\&",
    "%": "\\%",
    "$": "\\$",
    "#": "\\#",
    "_": "\\_",
    "{": "\\{",
    "}": "\\}",
    "~": "\\textasciitilde{}",
    "^": "\\textasciicircum{}",
    "\u00a0": "~",
    "\u2013": "--",
    "\u2014": "---",
    "«": "\\guillemotleft{}",
    "»": "\\guillemotright{}",
}
_ESCAPE_RE = re.compile("[" + re.escape("".join(_ESCAPES)) + "]")

_HEADER = re.compile(r"^(#{1,6})\s+(.*)")
_LIST_ITEM = re.compile(r"^(\s*)([-*+]|\d+\.)\s+(.*)")
_ALIGN_CELL = re.compile(r"^:?-+:?$")
_IMAGE = re.compile(r"^!\[(.*?)\]\((.*?)\)")
_DISPLAY_EQ = re.compile(r"^\$\$(.*?)\$\$$")

# Inline markup, applied in this order
_LINK = re.compile(r"\[(.*?)\]\((.*?)\)")
_BOLD = re.compile(r"\*\*(.+?)\*\*")
_ITALIC = re.compile(r"\*(.+?)\*")
_CODE = re.compile(r"`(.+?)`")
_STASHED = re.compile("\x00(\\d+)\x00")


def escape_latex(text: str) -> str:
    """Escape LaTeX specials in raw text (single pass, never double-escapes)."""
    if not text:
        return ""
    return _ESCAPE_RE.sub(lambda m: _ESCAPES[m.group(0)], text)


def _escape_url(url: str) -> str:
    return re.sub(r"([%#])", r"\\\1", url.strip())


def _inline(text: str) -> str:
    """
    Apply link/bold/italic/code markup, then escape what is left.

    Emitted commands are parked behind \\x00N\\x00 tokens so the final
    escaping pass only ever sees raw text.
    """
    stash: List[str] = []

    def keep(latex: str) -> str:
        stash.append(latex)
        return f"\x00{len(stash) - 1}\x00"

    text = _LINK.sub(
        lambda m: keep(f"\\href{{{_escape_url(m.group(2))}}}{{{escape_latex(m.group(1))}}}"),
        text,
    )
    text = _BOLD.sub(lambda m: keep(f"\\textbf{{{escape_latex(m.group(1))}}}"), text)
    text = _ITALIC.sub(lambda m: keep(f"\\textit{{{escape_latex(m.group(1))}}}"), text)
    text = _CODE.sub(lambda m: keep(f"\\texttt{{{escape_latex(m.group(1))}}}"), text)

    text = escape_latex(text)
    # Tokens only point at earlier stash entries, so this terminates.
    while _STASHED.search(text):
        text = _STASHED.sub(lambda m: stash[int(m.group(1))], text)
    return text


def _column_alignment(cell: str) -> str:
    if cell.startswith(":") and cell.endswith(":") and len(cell) > 1:
        return "c"
    if cell.endswith(":"):
        return "r"
    return "l"


def _split_row(line: str) -> List[str]:
    cells = [c.strip() for c in line.split("|")]
    if cells and cells[0] == "":
        cells = cells[1:]
    if cells and cells[-1] == "":
        cells = cells[:-1]
    return cells


class _MarkdownRenderer:
    """Parse state for one render() call."""

    def __init__(self) -> None:
        self.out: List[str] = []
        self.lists: List[Tuple[str, int]] = []
        self.in_code = False
        self.in_math = False
        self.in_quote = False
        self.table_spec = ""
        self.table_rows: List[List[str]] = []
        self.prev_blank = False

    def run(self, markdown: str) -> str:
        lines = markdown.replace("\r\n", "\n").replace("\x00", "").split("\n")
        for i, raw in enumerate(lines):
            nxt = lines[i + 1] if i + 1 < len(lines) else None
            self._line(raw.rstrip(), nxt)
        self._finish()
        return PREAMBLE + "".join(self.out) + END_DOCUMENT

    def _emit(self, latex: str) -> None:
        self.out.append(latex)

    # ---------- environments ----------

    def _close_lists(self, depth: int) -> None:
        while len(self.lists) > depth:
            kind, _ = self.lists.pop()
            self._emit(f"\\end{{{kind}}}\n")

    def _open_lists(self, depth: int, kind: str, indent: int) -> None:
        self._close_lists(depth)
        if len(self.lists) == depth and self.lists and self.lists[-1][0] != kind:
            self._close_lists(depth - 1)
        while len(self.lists) < depth:
            self._emit(f"\\begin{{{kind}}}\n")
            self.lists.append((kind, indent))

    def _flush_table(self) -> None:
        rows, spec = self.table_rows, self.table_spec
        self.table_rows, self.table_spec = [], ""
        # Rows without an alignment row are dropped.
        if not rows or not spec:
            return
        self._emit(f"\\begin{{tabular}}{{{spec}}}\n\\toprule\n")
        for idx, row in enumerate(rows):
            latex = " & ".join(row) + " \\\\"
            if idx == 0 and len(rows) > 1:
                latex += " \\midrule"
            elif idx < len(rows) - 1:
                latex += " \\hline"
            self._emit(latex + "\n")
        self._emit("\\bottomrule\n\\end{tabular}\n")

    def _finish(self) -> None:
        if self.in_code:
            self._emit("\\end{lstlisting}\n")
            self.in_code = False
        if self.in_math:
            self._emit("\\end{equation}\n")
            self.in_math = False
        self._flush_table()
        self._close_lists(0)
        if self.in_quote:
            self._emit("\\end{quote}\n")
            self.in_quote = False

    # ---------- per-line rules ----------

    def _line(self, line: str, nxt: Optional[str]) -> None:
        if line.startswith("```"):
            if self.in_code:
                self._emit("\\end{lstlisting}\n")
                self.in_code = False
            else:
                self._close_lists(0)
                lang = line[3:].strip() or "text"
                self._emit(f"\\begin{{lstlisting}}[language={escape_latex(lang)}]\n")
                self.in_code = True
            self.prev_blank = False
            return
        if self.in_code:
            self._emit(line + "\n")
            return

        if line.strip() == "$$":
            if self.in_math:
                self._emit("\\end{equation}\n")
                self.in_math = False
            else:
                self._close_lists(0)
                self._emit("\\begin{equation}\n")
                self.in_math = True
            self.prev_blank = False
            return
        if self.in_math:
            if line.strip():
                self._emit(line.strip() + "\n")
            return

        if not line.strip():
            if not self.prev_blank:
                self._emit("\n\\par\n")
            self.prev_blank = True
            return
        self.prev_blank = False

        header = _HEADER.match(line)
        if header:
            self._close_lists(0)
            level = len(header.group(1))
            title = escape_latex(header.group(2))
            self._emit(f"\\{HEADER_COMMANDS[level - 1]}{{{title}}}\n")
            return

        item = _LIST_ITEM.match(line)
        if item:
            whitespace, marker, content = item.groups()
            indent = len(whitespace.replace("\t", "    "))
            kind = "enumerate" if marker[0].isdigit() else "itemize"
            self._open_lists(indent // 2 + 1, kind, indent)
            self._emit(f"\\item {_inline(content)}\n")
            return

        self._close_lists(0)

        if "|" in line:
            cells = _split_row(line)
            if cells:
                if all(_ALIGN_CELL.match(c) for c in cells):
                    self.table_spec = "".join(_column_alignment(c) for c in cells)
                else:
                    self.table_rows.append([_inline(c) for c in cells])
            if nxt is None or "|" not in nxt:
                self._flush_table()
            return

        image = _IMAGE.match(line)
        if image:
            alt = escape_latex(image.group(1))
            path = image.group(2).strip()
            label = re.sub(r"\W", "_", path)
            self._emit(
                "\\begin{figure}[ht]\n"
                "  \\centering\n"
                f"  \\includegraphics[width=0.8\\textwidth]{{{_escape_url(path)}}}\n"
                f"  \\caption{{{alt}}}\n"
                f"  \\label{{fig:{label}}}\n"
                "\\end{figure}\n"
            )
            return

        if line.startswith(">"):
            if not self.in_quote:
                self._emit("\\begin{quote}\n")
                self.in_quote = True
            self._emit(escape_latex(line[1:].strip()) + "\n")
            if nxt is None or not nxt.startswith(">"):
                self._emit("\\end{quote}\n")
                self.in_quote = False
            return

        equation = _DISPLAY_EQ.match(line)
        if equation:
            self._emit(f"\\begin{{equation}}\n{equation.group(1).strip()}\n\\end{{equation}}\n")
            return

        self._emit(_inline(line) + "\n")


def render(markdown: str) -> str:
    """Render Markdown to a complete LaTeX document. Never raises."""
    if not isinstance(markdown, str):
        markdown = "" if markdown is None else str(markdown)
    try:
        return _MarkdownRenderer().run(markdown)
    except Exception:
        logger.exception("Markdown rendering failed, emitting escaped text instead")
        return PREAMBLE + escape_latex(markdown) + "\n" + END_DOCUMENT
