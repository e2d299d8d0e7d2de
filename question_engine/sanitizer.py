"""
Step 4 — Response Sanitizer

Turns free-form model text into a list of raw item records, or None.
Each step runs only when the previous one failed to produce valid JSON:

  1. strip ``` / ```json code fences
  2. cut the outermost [..] / {..} span (drops leading/trailing prose)
  3. strict json.loads
  4. backslash repair, then json.loads again
  5. give up → None (no per-item salvage from a broken blob)

Why step 4 exists: math markup is full of single backslashes (\\sqrt, \\alpha)
that are invalid inside JSON strings. Worse, some LaTeX commands start with a
letter JSON does accept as an escape (\\frac → form feed + "rac", \\theta → tab
+ "heta"). Those collisions parse "successfully" into garbage, so strict
parsing treats them as failures too and the repair pass doubles them.

Which escapes count as LaTeX:
  - \\b / \\f followed by letters: always (question text never holds a
    backspace or form feed)
  - \\n / \\r / \\t: only when the word is a known command name AND it sits
    inside a $...$ / $$...$$ span or is followed by { _ ^ or a backslash.
    A real newline before "u = 5 m/s" stays a newline.

Still a heuristic, not a LaTeX parser: a real newline inside a math span
followed by a command name (\\nu, \\times) is taken for the command.
"""

import json
import logging
import re
from typing import Any, List, Optional, Set, Tuple

log = logging.getLogger("generation.pipeline")

# Keys a model sometimes wraps the array in
WRAPPER_KEYS = ("questions", "data", "items", "result")

# LaTeX command names that begin with \n, \r or \t
NRT_LATEX_COMMANDS = frozenset({
    # \n
    "nabla", "ne", "neq", "ni", "nu", "not", "notin", "newline", "neg", "nearrow",
    "nexists", "nleq", "ngeq", "nmid", "nparallel", "nsubseteq", "nleftarrow",
    "nrightarrow", "nsim", "ncong", "nonumber", "nolimits",
    # \r
    "rho", "right", "rightarrow", "rangle", "rceil", "rfloor", "rm",
    "rightleftharpoons", "rbrace", "rVert", "rvert",
    # \t
    "theta", "tau", "times", "to", "text", "textbf", "textit", "textrm", "textsf",
    "texttt", "textdegree", "textstyle", "tan", "tanh", "tilde", "triangle",
    "triangleq", "therefore", "top", "tfrac", "tbinom", "tiny",
})

# Characters that only follow a command name, never prose after a newline/tab
_COMMAND_FOLLOWERS = ("{", "_", "^", "\\")

_FENCE_OPEN = re.compile(r"^\s*```[a-zA-Z]*\s*", re.MULTILINE)
_FENCE_CLOSE = re.compile(r"\s*```\s*$", re.MULTILINE)

# One backslash token: \uXXXX | \<letters> | \<any single char> | lone trailing backslash
_BACKSLASH_TOKEN = re.compile(r"\\(u[0-9a-fA-F]{4}|[A-Za-z]+|.|$)", re.DOTALL)
_UNICODE_ESCAPE = re.compile(r"u[0-9a-fA-F]{4}")

_JSON_STRING = re.compile(r'"(?:[^"\\]|\\.)*"', re.DOTALL)
_MATH_SPAN = re.compile(r"\$\$.+?\$\$|\$.+?\$", re.DOTALL)


# ─── Text clean-up ─────────────────────────────────────────────────────────────

def strip_code_fences(text: str) -> str:
    text = _FENCE_OPEN.sub("", text.strip())
    return _FENCE_CLOSE.sub("", text).strip()


def locate_json_span(text: str) -> Optional[str]:
    """First opening bracket/brace through the last closing one, or None."""
    starts = [i for i in (text.find("["), text.find("{")) if i != -1]
    if not starts:
        return None
    start = min(starts)
    end = max(text.rfind("]"), text.rfind("}"))
    if end < start:
        return None
    return text[start:end + 1]


# ─── Backslash handling ────────────────────────────────────────────────────────

def _is_json_escape(tail: str) -> bool:
    """True when backslash + tail starts a syntactically valid JSON escape."""
    if tail in ("\\", '"', "/"):
        return True
    if _UNICODE_ESCAPE.fullmatch(tail):
        return True
    return tail[:1] in ("b", "f", "n", "r", "t")


def _math_ranges(text: str) -> List[Tuple[int, int]]:
    """Offsets of $...$ / $$...$$ spans, each confined to one JSON string."""
    ranges = []
    for literal in _JSON_STRING.finditer(text):
        for math in _MATH_SPAN.finditer(literal.group(0)):
            ranges.append((literal.start() + math.start(), literal.start() + math.end()))
    return ranges


def _is_latex_command(match: "re.Match[str]", text: str, math: List[Tuple[int, int]]) -> bool:
    tail = match.group(1)
    head = tail[:1]
    if head in ("b", "f"):
        return len(tail) > 1 and tail.isalpha()
    if head in ("n", "r", "t") and tail in NRT_LATEX_COMMANDS:
        if text[match.end():match.end() + 1] in _COMMAND_FOLLOWERS:
            return True
        return any(lo < match.start() < hi for lo, hi in math)
    return False


def latex_escape_offsets(text: str) -> Set[int]:
    """Offsets of backslashes that JSON would read as an escape but are LaTeX commands."""
    math = _math_ranges(text)
    return {
        m.start()
        for m in _BACKSLASH_TOKEN.finditer(text)
        if _is_json_escape(m.group(1)) and _is_latex_command(m, text, math)
    }


def repair_backslashes(text: str) -> str:
    """
    Double every backslash that does not start a JSON escape meant as one.

    Idempotent: already-doubled backslashes are consumed as pairs, so a
    second pass changes nothing.
    """
    latex = latex_escape_offsets(text)

    def _repair(match: "re.Match[str]") -> str:
        if match.start() not in latex and _is_json_escape(match.group(1)):
            return match.group(0)
        return "\\" + match.group(0)

    return _BACKSLASH_TOKEN.sub(_repair, text)


def has_escape_collision(text: str) -> bool:
    """True when the text contains a JSON escape that is really a LaTeX command."""
    return bool(latex_escape_offsets(text))


def _strict_loads(span: str) -> Any:
    if has_escape_collision(span):
        raise ValueError("escape sequence collides with a LaTeX command")
    return json.loads(span)


# ─── Shape normalisation ───────────────────────────────────────────────────────

def _as_item_list(data: Any) -> Optional[List[Any]]:
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        for key in WRAPPER_KEYS:
            if isinstance(data.get(key), list):
                return data[key]
        if "statement" in data:
            return [data]
    return None


# ─── Main entry ────────────────────────────────────────────────────────────────

def parse(raw_text: Optional[str]) -> Optional[List[Any]]:
    """
    Extract the list of raw item records from a model reply.

    Returns:
        The parsed list (items are untrusted, unvalidated), or None when the
        reply holds no parseable JSON array.
    """
    if not raw_text or not raw_text.strip():
        log.warning("[SANITIZE] Empty response text")
        return None

    span = locate_json_span(strip_code_fences(raw_text))
    if span is None:
        log.warning(f"[SANITIZE] No JSON found in response: {raw_text[:200]!r}")
        return None

    try:
        data = _strict_loads(span)
    except ValueError as strict_err:
        log.info(f"[SANITIZE] Strict parse failed ({strict_err}); repairing backslashes")
        try:
            data = json.loads(repair_backslashes(span))
        except ValueError as repair_err:
            log.warning(f"[SANITIZE] Repair failed: {repair_err}")
            return None

    items = _as_item_list(data)
    if items is None:
        log.warning(f"[SANITIZE] Parsed JSON is not a question array (got {type(data).__name__})")
    return items
