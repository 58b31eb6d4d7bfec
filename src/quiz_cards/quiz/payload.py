"""Tolerant JSON parsing, batch validation and import helpers.

Model replies are not guaranteed to be clean JSON: they may be wrapped in
code fences or surrounded by prose. ``parse_json_payload`` tries a strict
parse first, then strips fences, then falls back to the first balanced
array/object substring. Everything downstream works with typed
:class:`~quiz_cards.quiz.models.Question` tuples or a ``ValidationError``.
"""

from __future__ import annotations

import json
import re
from typing import Any, List, Mapping, Optional, Sequence

from ..errors import ValidationError
from .models import (
    MIXED,
    MULTIPLE_CHOICE,
    OPEN_ENDED,
    QUESTION_KINDS,
    Question,
    field_value,
)

__all__ = [
    "parse_json_payload",
    "unwrap_questions",
    "validate_generated",
    "check_questions",
    "parse_import",
    "load_import_text",
    "infer_mode",
    "export_template",
    "template_json",
]

_FENCE_RE = re.compile(r"```[A-Za-z0-9_-]*\s*(.+?)\s*```", re.DOTALL)
_CLOSERS = {"[": "]", "{": "}"}

_TEMPLATE: List[dict] = [
    {
        "id": "mcq1",
        "kind": MULTIPLE_CHOICE,
        "prompt": "When does React run `useEffect` by default?",
        "options": [
            "Only on mount",
            "Only on update",
            "After every render",
            "Only on unmount",
        ],
        "correctOptionIndex": 2,
        "explanation": (
            "`useEffect` runs after every completed render unless a "
            "dependency array is provided."
        ),
    },
    {
        "id": "qa1",
        "kind": OPEN_ENDED,
        "prompt": "Explain what a closure is in JavaScript.",
        "modelAnswer": (
            "A closure is a function bundled together with references to "
            "its surrounding lexical environment."
        ),
    },
]


def parse_json_payload(content: str) -> Any:
    """Parse JSON out of a model reply, tolerating fences and prose."""

    text = (content or "").strip()
    if not text:
        raise ValidationError("Response was empty; expected JSON.")
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass

    fenced = _FENCE_RE.search(text)
    if fenced:
        text = fenced.group(1).strip()
        try:
            return json.loads(text)
        except json.JSONDecodeError:
            pass

    fragment = _first_balanced_fragment(text)
    if fragment is None:
        raise ValidationError("No JSON array or object found in response.")
    try:
        return json.loads(fragment)
    except json.JSONDecodeError as exc:
        raise ValidationError(f"Failed to parse JSON payload: {exc}") from exc


def unwrap_questions(value: Any) -> Any:
    """Return the question list from a bare list or ``{"questions": [...]}``."""

    if isinstance(value, Mapping) and isinstance(value.get("questions"), list):
        return value["questions"]
    return value


def validate_generated(items: Any) -> tuple[Question, ...]:
    """Validate a generated batch; any bad item rejects the whole batch."""

    items = unwrap_questions(items)
    if not isinstance(items, list):
        raise ValidationError(
            "Question service returned {0}; expected a list of "
            "questions.".format(type(items).__name__)
        )
    if not items:
        raise ValidationError("Question service returned no questions.")

    problems: List[str] = []
    seen: set[str] = set()
    for position, item in enumerate(items, start=1):
        if not isinstance(item, Mapping):
            problems.append(f"item {position} is not an object")
            continue
        identifier = _clean_identifier(item.get("id"))
        if not identifier:
            problems.append(f"item {position} is missing an id")
        elif identifier in seen:
            problems.append(f"item {position} repeats id '{identifier}'")
        else:
            seen.add(identifier)
        kind = field_value(item, "kind")
        if kind not in QUESTION_KINDS:
            problems.append(f"item {position} has unknown kind {kind!r}")
        prompt = field_value(item, "prompt")
        if not isinstance(prompt, str) or not prompt.strip():
            problems.append(f"item {position} is missing a prompt")

    if problems:
        raise ValidationError(
            "Generated questions failed validation: " + "; ".join(problems)
        )
    return tuple(
        Question.from_dict(item, index=idx) for idx, item in enumerate(items)
    )


def check_questions(questions: Sequence[Question]) -> None:
    """Reject a typed batch with blank or repeated ids, unknown kinds or
    blank prompts. Answers are keyed by id, so ids must be unique."""

    problems: List[str] = []
    seen: set[str] = set()
    for position, question in enumerate(questions, start=1):
        identifier = (question.id or "").strip()
        if not identifier:
            problems.append(f"item {position} is missing an id")
        elif identifier in seen:
            problems.append(f"item {position} repeats id '{identifier}'")
        else:
            seen.add(identifier)
        if question.kind not in QUESTION_KINDS:
            problems.append(
                f"item {position} has unknown kind {question.kind!r}"
            )
        if not (question.prompt or "").strip():
            problems.append(f"item {position} is missing a prompt")
    if problems:
        raise ValidationError(
            "Generated questions failed validation: " + "; ".join(problems)
        )


def load_import_text(text: str) -> tuple[Question, ...]:
    """Parse an import file's contents into questions."""

    try:
        value = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ValidationError(f"Import failed: invalid JSON ({exc}).") from exc
    return parse_import(value)


def parse_import(value: Any) -> tuple[Question, ...]:
    """Accept an externally supplied question set.

    Only the container is checked. Individual items are not validated beyond
    being objects, so a malformed entry fails when it is answered.
    """

    items = unwrap_questions(value)
    if not isinstance(items, list) or not items:
        raise ValidationError(
            "Invalid format: expected a non-empty JSON array of questions."
        )
    for position, item in enumerate(items, start=1):
        if not isinstance(item, Mapping):
            raise ValidationError(
                f"Invalid format: item {position} is not an object."
            )
    return tuple(
        Question.from_dict(item, index=idx) for idx, item in enumerate(items)
    )


def infer_mode(questions: Sequence[Question]) -> str:
    kinds = {question.kind for question in questions}
    if kinds == {MULTIPLE_CHOICE}:
        return MULTIPLE_CHOICE
    if kinds == {OPEN_ENDED}:
        return OPEN_ENDED
    return MIXED


def export_template() -> List[dict]:
    """Return the example question set documenting the import format."""

    return json.loads(json.dumps(_TEMPLATE))


def template_json() -> str:
    return json.dumps(export_template(), indent=2, ensure_ascii=False) + "\n"


def _clean_identifier(raw: Any) -> str:
    if isinstance(raw, bool) or not isinstance(raw, (str, int)):
        return ""
    return str(raw).strip()


def _first_balanced_fragment(text: str) -> Optional[str]:
    for start, char in enumerate(text):
        if char in _CLOSERS:
            end = _balanced_end(text, start)
            if end is not None:
                return text[start : end + 1]
    return None


def _balanced_end(text: str, start: int) -> Optional[int]:
    stack: List[str] = []
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char in _CLOSERS:
            stack.append(_CLOSERS[char])
        elif char in ("]", "}"):
            if not stack or stack.pop() != char:
                return None
            if not stack:
                return index
    return None
