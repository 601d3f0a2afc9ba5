"""
Robust JSON Parser for LLM Responses

Recovers one JSON array or object from slide-generation output that may be
wrapped in prose or markdown fences, use double-quoted HTML attributes
inside JSON strings, contain syntax errors, or be cut off by the token
limit.

Strategies (in order, each one working on the text left by the previous):
1. Fence & boundary strip
2. Direct parse
3. HTML attribute quote fix (scoped to "html" fields)
4. Structural repair (trailing commas, unquoted keys, comments, literals)
5. Escape repair (raw control characters, bad escapes, stray quotes)
6. Bracket balancing (truncated output)
7. Boundary extraction (first complete top-level value)
8. Field-level extraction of slide records (last resort)

A value is only accepted once it passes structural validation; a parseable
but invalid value lets the cascade continue.
"""

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError
from openai import AsyncOpenAI

from ..exceptions import UnrecoverableFormatError

logger = logging.getLogger(__name__)

T = TypeVar('T', bound=BaseModel)

Validator = Callable[[Any], bool]

_BRACKET_RE = re.compile(r'[\[{]')
_FENCE_RE = re.compile(r'```[A-Za-z]*')

_OPENERS = {'{': '}', '[': ']'}
_CLOSERS = {'}': '{', ']': '['}


def is_json_container(value: Any) -> bool:
    """Default structural check: the model was asked for an array or object."""
    return isinstance(value, (dict, list))


def _loads(text: str) -> Any:
    return json.loads(text)


# =============================================================================
# Strategy 1: fence & boundary strip
# =============================================================================

def strip_wrapping(text: str) -> str:
    """Drop markdown fences and any prose before the first bracket."""
    cleaned = text.strip()

    first_bracket = _BRACKET_RE.search(cleaned)
    if first_bracket is None:
        return cleaned

    fence = _FENCE_RE.search(cleaned)
    if fence and fence.start() < first_bracket.start():
        body = cleaned[fence.end():]
        closing = body.rfind('```')
        if closing != -1:
            body = body[:closing]
        cleaned = body
    elif cleaned.endswith('```'):
        cleaned = cleaned[:-3]

    start = _BRACKET_RE.search(cleaned)
    if start is None:
        return cleaned.strip()
    return cleaned[start.start():].strip()


# =============================================================================
# Strategy 3: HTML attribute quote fix
# =============================================================================

_HTML_FIELD_RE = re.compile(r'"html"\s*:\s*"')
_NEXT_KEY_RE = re.compile(r',\s*"[^"\\]*"\s*:')
_HTML_ATTR_RE = re.compile(r'(\s[\w:.-]+\s*=\s*)\\?"([^"\\]*)\\?"')
_BARE_QUOTE_RE = re.compile(r'(?<!\\)"')


def _html_value_end(text: str, start: int) -> Optional[int]:
    """Index of the quote closing an html value, tolerating unescaped attribute quotes."""
    i = start
    n = len(text)
    while i < n:
        ch = text[i]
        if ch == '\\':
            i += 2
            continue
        if ch == '"':
            rest = text[i + 1:].lstrip()
            if not rest or rest[0] in '}]' or _NEXT_KEY_RE.match(rest):
                return i
            # Output cut off right after the value
            if rest[0] == ',' and not rest[1:].strip():
                return i
        i += 1
    return None


def _rewrite_attribute(match: "re.Match") -> str:
    prefix, value = match.group(1), match.group(2)
    if "'" in value:
        return f'{prefix}\\"{value}\\"'
    return f"{prefix}'{value}'"


def fix_html_attribute_quotes(text: str) -> str:
    """
    Rewrite attr="value" to attr='value' inside "html" string fields only.

    Models often emit HTML with double-quoted attributes that terminate the
    enclosing JSON string. Quotes elsewhere in the document are left alone.
    """
    out = []
    pos = 0
    for match in _HTML_FIELD_RE.finditer(text):
        value_start = match.end()
        if value_start < pos:
            continue
        value_end = _html_value_end(text, value_start)
        if value_end is None:
            value_end = len(text)
        value = text[value_start:value_end]
        value = _HTML_ATTR_RE.sub(_rewrite_attribute, value)
        value = _BARE_QUOTE_RE.sub(r'\\"', value)
        out.append(text[pos:value_start])
        out.append(value)
        pos = value_end
    out.append(text[pos:])
    return ''.join(out)


# =============================================================================
# Strategy 4: structural repair
# =============================================================================

def _split_string_literals(text: str) -> List[Tuple[bool, str]]:
    """Split text into (is_string, segment) pieces on double-quoted literals."""
    segments: List[Tuple[bool, str]] = []
    buf = []
    in_string = False
    i = 0
    n = len(text)
    while i < n:
        ch = text[i]
        if in_string:
            buf.append(ch)
            if ch == '\\' and i + 1 < n:
                buf.append(text[i + 1])
                i += 2
                continue
            if ch == '"':
                segments.append((True, ''.join(buf)))
                buf = []
                in_string = False
        else:
            if ch == '"':
                if buf:
                    segments.append((False, ''.join(buf)))
                buf = [ch]
                in_string = True
            else:
                buf.append(ch)
        i += 1
    if buf:
        segments.append((in_string, ''.join(buf)))
    return segments


def _repair_code_segment(segment: str) -> str:
    segment = re.sub(r'/\*[\s\S]*?\*/', '', segment)
    segment = re.sub(r'//[^\n]*', '', segment)
    segment = re.sub(r"'((?:[^'\\]|\\.)*)'", lambda m: json.dumps(m.group(1)), segment)
    segment = re.sub(r'\bNone\b', 'null', segment)
    segment = re.sub(r'\bTrue\b', 'true', segment)
    segment = re.sub(r'\bFalse\b', 'false', segment)
    segment = re.sub(r'([{,]\s*)([A-Za-z_$][\w$-]*)(\s*:)', r'\1"\2"\3', segment)
    return segment


def repair_structure(text: str) -> str:
    """Fix comments, Python literals, single quotes, unquoted keys and trailing commas."""
    pieces = [
        segment if is_string else _repair_code_segment(segment)
        for is_string, segment in _split_string_literals(text)
    ]
    repaired = ''.join(pieces)
    # Trailing commas may span a removed comment, so strip them on the joined text
    pieces = [
        segment if is_string else re.sub(r',(\s*[}\]])', r'\1', segment)
        for is_string, segment in _split_string_literals(repaired)
    ]
    return ''.join(pieces)


# =============================================================================
# Strategy 5: escape repair
# =============================================================================

_VALID_ESCAPES = '"\\/bfnrtu'
_CONTROL_ESCAPES = {'\n': '\\n', '\r': '\\r', '\t': '\\t', '\b': '\\b', '\f': '\\f'}
_HEX4_RE = re.compile(r'[0-9a-fA-F]{4}')


def _quote_closes_string(text: str, index: int) -> bool:
    rest = text[index:].lstrip()
    return not rest or rest[0] in ',:}]'


def repair_string_escapes(text: str) -> str:
    """Escape raw control characters, invalid backslashes and stray quotes inside strings."""
    out = []
    in_string = False
    i = 0
    n = len(text)
    while i < n:
        ch = text[i]
        if not in_string:
            if ch == '"':
                in_string = True
            out.append(ch)
            i += 1
            continue

        if ch == '\\':
            nxt = text[i + 1] if i + 1 < n else ''
            if nxt == 'u' and not _HEX4_RE.match(text, i + 2):
                out.append('\\\\')
                i += 1
            elif nxt and nxt in _VALID_ESCAPES:
                out.append(ch + nxt)
                i += 2
            elif nxt == "'":
                out.append("'")
                i += 2
            else:
                out.append('\\\\')
                i += 1
            continue

        if ch == '"':
            if _quote_closes_string(text, i + 1):
                in_string = False
                out.append(ch)
            else:
                out.append('\\"')
        elif ch in _CONTROL_ESCAPES:
            out.append(_CONTROL_ESCAPES[ch])
        elif ord(ch) < 0x20:
            out.append(f'\\u{ord(ch):04x}')
        else:
            out.append(ch)
        i += 1
    return ''.join(out)


# =============================================================================
# Strategy 6: bracket balancing
# =============================================================================

def _closers(stack: List[str]) -> str:
    return ''.join(_OPENERS[opener] for opener in reversed(stack))


def balance_brackets(text: str) -> str:
    """
    Close whatever the token limit left open.

    Cuts back to the last complete element of the outermost open array
    (falling back to other containers) and closes from there, discarding
    the trailing partial element. Only when nothing complete precedes the
    cut-off are the open string and containers closed as-is.
    """
    stack: List[str] = []
    cut_points: List[Tuple[int, Tuple[str, ...]]] = []
    in_string = False
    escape = False
    closed_top_level = False

    for i, ch in enumerate(text):
        if escape:
            escape = False
            continue
        if in_string:
            if ch == '\\':
                escape = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch in _OPENERS:
            stack.append(ch)
        elif ch in _CLOSERS:
            if stack and stack[-1] == _CLOSERS[ch]:
                stack.pop()
                if stack:
                    cut_points.append((i + 1, tuple(stack)))
                else:
                    closed_top_level = True
        elif ch == ',' and stack:
            cut_points.append((i, tuple(stack)))

    # A complete value followed by more text is left to boundary extraction
    if not stack or closed_top_level:
        return text

    naive = text.rstrip()
    if in_string:
        naive += '"'
    naive = re.sub(r'[,:]\s*$', '', naive) + _closers(stack)

    # Array cuts first, shallowest then latest, so a record list loses only its partial tail
    ordered = sorted(
        cut_points,
        key=lambda cut: (cut[1][-1] != '[', len(cut[1]), -cut[0]),
    )
    candidates = [text[:index].rstrip() + _closers(list(snapshot)) for index, snapshot in ordered]
    candidates.append(naive)

    for candidate in candidates:
        try:
            _loads(candidate)
            return candidate
        except json.JSONDecodeError:
            continue
    return naive


# =============================================================================
# Strategy 7: boundary extraction
# =============================================================================

def extract_first_value(text: str) -> str:
    """Cut the text right after the first complete top-level value."""
    start = _BRACKET_RE.search(text)
    if start is None:
        return text

    depth = 0
    in_string = False
    escape = False
    for i in range(start.start(), len(text)):
        ch = text[i]
        if escape:
            escape = False
            continue
        if in_string:
            if ch == '\\':
                escape = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch in _OPENERS:
            depth += 1
        elif ch in _CLOSERS:
            depth -= 1
            if depth == 0:
                return text[start.start():i + 1]
    return text[start.start():]


# =============================================================================
# Strategy 8: field-level extraction
# =============================================================================

_STRING_VALUE = r'"((?:[^"\\]|\\.)*)"'

SLIDE_RECORD_MARKER = re.compile(r'"slideId"\s*:')
SLIDE_FIELD_PATTERNS: Dict[str, "re.Pattern"] = {
    "slideId": re.compile(r'"slideId"\s*:\s*' + _STRING_VALUE),
    "slideIndex": re.compile(r'"slideIndex"\s*:\s*"?(\d+)"?'),
    "html": re.compile(r'"html"\s*:\s*' + _STRING_VALUE),
    "fullText": re.compile(r'"fullText"\s*:\s*' + _STRING_VALUE),
    "revealData": re.compile(r'"revealData"\s*:\s*\[([^\]]*)\]'),
}


def _unescape(value: str) -> str:
    try:
        return json.loads(f'"{value}"')
    except json.JSONDecodeError:
        return value.replace('\\n', '\n').replace('\\"', '"')


def _parse_reveal_list(body: str) -> List[str]:
    try:
        items = json.loads(f'[{body}]')
        return [str(item) for item in items]
    except json.JSONDecodeError:
        return [item.strip().strip('"\'') for item in body.split(',') if item.strip().strip('"\'')]


def extract_slide_records(text: str) -> Optional[List[Dict[str, Any]]]:
    """Rebuild slide records field by field, skipping records missing a required field."""
    markers = [m.start() for m in SLIDE_RECORD_MARKER.finditer(text)]
    if not markers:
        return None

    bounds = [0]
    for previous, current in zip(markers, markers[1:]):
        brace = text.rfind('{', previous, current)
        bounds.append(brace if brace != -1 else current)
    bounds.append(len(text))

    slides: List[Dict[str, Any]] = []
    for index in range(len(markers)):
        chunk = text[bounds[index]:bounds[index + 1]]
        found = {name: pattern.search(chunk) for name, pattern in SLIDE_FIELD_PATTERNS.items()}
        missing = [name for name, match in found.items() if match is None]
        if missing:
            logger.warning(f"Field extraction: record {index + 1} missing {missing}, skipped")
            continue
        slides.append({
            "slideId": _unescape(found["slideId"].group(1)),
            "slideIndex": int(found["slideIndex"].group(1)),
            "html": _unescape(found["html"].group(1)),
            "narration": {"fullText": _unescape(found["fullText"].group(1))},
            "revealData": _parse_reveal_list(found["revealData"].group(1)),
        })

    if not slides:
        return None
    logger.info(f"Field extraction rebuilt {len(slides)} slide records")
    return slides


# =============================================================================
# Parser
# =============================================================================

@dataclass(frozen=True)
class RepairStrategy:
    """A named, pure text transform tried as one step of the cascade."""
    name: str
    transform: Callable[[str], str]


DEFAULT_STRATEGIES: Tuple[RepairStrategy, ...] = (
    RepairStrategy("html_attribute_fix", fix_html_attribute_quotes),
    RepairStrategy("structural_repair", repair_structure),
    RepairStrategy("escape_repair", repair_string_escapes),
    RepairStrategy("bracket_balancing", balance_brackets),
    RepairStrategy("boundary_extraction", extract_first_value),
)


@dataclass
class ParseOutcome:
    value: Any
    strategy: str
    attempts: List[str]


class JSONRecoveryParser:
    """
    Robust JSON parser with an ordered cascade of repair strategies.

    Usage:
        parser = JSONRecoveryParser()

        # Simple parse
        result = parser.parse(llm_response)

        # Custom structural check
        result = parser.parse(llm_response, validator=lambda v: isinstance(v, list))

        # With Pydantic validation
        result = parser.parse_and_validate(llm_response, CourseLayout)
    """

    def __init__(
        self,
        strategies: Tuple[RepairStrategy, ...] = DEFAULT_STRATEGIES,
        record_extractor: Optional[Callable[[str], Optional[Any]]] = extract_slide_records,
        openai_client: Optional[AsyncOpenAI] = None,
        repair_model: str = "gpt-4o-mini",
    ):
        self.strategies = strategies
        self.record_extractor = record_extractor
        self.client = openai_client
        self._repair_model = repair_model

    def parse(self, content: str, validator: Optional[Validator] = None) -> Any:
        """
        Parse JSON with multiple fallback strategies.

        Args:
            content: Raw LLM response that should contain JSON
            validator: Structural check a candidate must pass (default: dict or list)

        Returns:
            Parsed JSON value

        Raises:
            UnrecoverableFormatError: If all strategies fail
        """
        return self.parse_with_outcome(content, validator).value

    def parse_with_outcome(self, content: str, validator: Optional[Validator] = None) -> ParseOutcome:
        """Same as parse(), also reporting which strategy produced the value."""
        check = validator or is_json_container
        attempts: List[str] = []

        if not content or _BRACKET_RE.search(content) is None:
            raise UnrecoverableFormatError(
                "No JSON array or object found in response",
                original_content=content or "",
                attempts=["boundary_strip: no bracket"],
            )

        # Strategy 1 + 2: pristine JSON is accepted untouched
        stripped = strip_wrapping(content)
        candidate = content.strip()
        if candidate == stripped:
            result = self._attempt(candidate, check)
            if result is not _FAILED:
                return ParseOutcome(result, "direct_parse", attempts)
            attempts.append("direct_parse: failed")
        else:
            attempts.append("boundary_strip: removed wrapping")

        # Strategies 3-7, each on the text left by the previous one
        text = stripped
        tried = candidate == stripped
        html_fixed = None
        for strategy in self.strategies:
            previous = text
            text = strategy.transform(text)
            if strategy.name == "html_attribute_fix":
                html_fixed = text
            if text == previous and tried:
                attempts.append(f"{strategy.name}: no change")
                continue

            result = self._attempt(text, check)
            tried = True
            if result is not _FAILED:
                # Wrapped output that needed no repair still counts as a direct parse
                name = strategy.name if text != previous else "direct_parse"
                if name not in ("direct_parse", "html_attribute_fix"):
                    logger.warning(f"JSON recovered by {name} after {len(attempts)} failed attempts")
                return ParseOutcome(result, name, attempts)
            attempts.append(f"{strategy.name}: failed")

        # Strategy 8: field-level extraction
        if self.record_extractor is not None:
            for source in (html_fixed, stripped):
                if source is None:
                    continue
                records = self.record_extractor(source)
                if records is not None and check(records):
                    logger.warning(f"JSON recovered by field extraction after {len(attempts)} failed attempts")
                    return ParseOutcome(records, "field_extraction", attempts)
            attempts.append("field_extraction: failed")

        logger.error(f"All JSON recovery strategies failed ({len(attempts)} attempts)")
        raise UnrecoverableFormatError(
            f"Failed to parse JSON after {len(attempts)} attempts",
            original_content=content,
            attempts=attempts,
        )

    def parse_and_validate(self, content: str, model: Type[T]) -> T:
        """Parse JSON and validate against a Pydantic model."""
        parsed = self.parse(content, validator=lambda v: isinstance(v, dict))
        return model.model_validate(parsed)

    async def parse_with_llm_fallback(
        self,
        content: str,
        model: Optional[Type[T]] = None,
        max_retries: int = 2,
    ) -> Union[Any, T]:
        """
        Parse with LLM-based repair as final fallback.

        The local cascade runs first; only when it raises and a client was
        given is the model asked to rewrite the text as valid JSON.
        """
        try:
            parsed = self.parse(content)
            if model:
                return model.model_validate(parsed)
            return parsed
        except UnrecoverableFormatError:
            if not self.client:
                raise

            for attempt in range(max_retries):
                repaired = await self._llm_repair(content, model)
                if not repaired:
                    continue
                try:
                    parsed = self.parse(repaired)
                    if model:
                        return model.model_validate(parsed)
                    return parsed
                except (UnrecoverableFormatError, ValidationError):
                    logger.warning(f"LLM repair attempt {attempt + 1}/{max_retries} still invalid")
                    continue

            raise

    @staticmethod
    def _attempt(text: str, check: Validator) -> Any:
        try:
            value = _loads(text)
        except (json.JSONDecodeError, RecursionError):
            return _FAILED
        if not check(value):
            return _FAILED
        return value

    async def _llm_repair(self, content: str, model: Optional[Type[BaseModel]]) -> Optional[str]:
        schema_hint = ""
        if model:
            schema_hint = f"\n\nExpected schema:\n{model.model_json_schema()}"

        prompt = f"""The following text should be valid JSON but has syntax errors.
Fix the JSON and return ONLY the corrected JSON, nothing else.

Original content:
```
{content[:2000]}
```
{schema_hint}

Return ONLY valid JSON, no explanation."""

        try:
            response = await self.client.chat.completions.create(
                model=self._repair_model,
                messages=[{"role": "user", "content": prompt}],
                temperature=0.0,
                max_tokens=2000,
            )
            return (response.choices[0].message.content or "").strip()
        except Exception as e:
            logger.warning(f"LLM JSON repair call failed: {e}")
            return None


class _Failed:
    """Sentinel distinguishing a failed attempt from a parsed null."""


_FAILED = _Failed()
