"""Data structures for questions, answers, sessions and history snapshots."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal, Mapping, MutableMapping, Sequence

__all__ = [
    "MULTIPLE_CHOICE",
    "OPEN_ENDED",
    "MIXED",
    "QUESTION_KINDS",
    "QUIZ_MODES",
    "QuestionKind",
    "QuizMode",
    "Question",
    "EvaluationResult",
    "UserAnswer",
    "QuizSession",
    "HistoryItem",
    "GenerationRequest",
    "score_display",
    "field_value",
]

MULTIPLE_CHOICE = "multiple-choice"
OPEN_ENDED = "open-ended"
MIXED = "mixed"

QuestionKind = Literal["multiple-choice", "open-ended"]
QuizMode = Literal["multiple-choice", "open-ended", "mixed"]

QUESTION_KINDS: tuple[str, ...] = (MULTIPLE_CHOICE, OPEN_ENDED)
QUIZ_MODES: tuple[str, ...] = (MULTIPLE_CHOICE, OPEN_ENDED, MIXED)

# Canonical wire name -> names accepted on input. Later entries are the
# legacy field names found in older export files.
_FIELD_ALIASES: Mapping[str, tuple[str, ...]] = {
    "kind": ("kind", "type"),
    "prompt": ("prompt", "question"),
    "correctOptionIndex": ("correctOptionIndex", "correctAnswerIndex"),
    "modelAnswer": ("modelAnswer", "model_answer"),
}


def field_value(payload: Mapping[str, Any], name: str) -> Any:
    """Return ``payload[name]`` honouring the accepted field aliases."""

    for candidate in _FIELD_ALIASES.get(name, (name,)):
        if candidate in payload:
            return payload[candidate]
    return None


@dataclass(frozen=True)
class Question:
    """Immutable quiz question.

    ``kind`` is kept as given for imported files so that malformed entries
    surface when they are answered rather than when the file is loaded.
    """

    id: str
    kind: str
    prompt: str
    options: tuple[str, ...] = ()
    correct_option_index: int | None = None
    explanation: str | None = None
    model_answer: str | None = None

    @property
    def is_multiple_choice(self) -> bool:
        return self.kind == MULTIPLE_CHOICE

    @property
    def is_open_ended(self) -> bool:
        return self.kind == OPEN_ENDED

    @property
    def correct_option(self) -> str | None:
        index = self.correct_option_index
        if index is None or not 0 <= index < len(self.options):
            return None
        return self.options[index]

    def to_dict(self) -> MutableMapping[str, Any]:
        payload: MutableMapping[str, Any] = {
            "id": self.id,
            "kind": self.kind,
            "prompt": self.prompt,
        }
        if self.options:
            payload["options"] = list(self.options)
        if self.correct_option_index is not None:
            payload["correctOptionIndex"] = self.correct_option_index
        if self.explanation is not None:
            payload["explanation"] = self.explanation
        if self.model_answer is not None:
            payload["modelAnswer"] = self.model_answer
        return payload

    @classmethod
    def from_dict(
        cls, payload: Mapping[str, Any], *, index: int = 0
    ) -> "Question":
        raw_id = payload.get("id")
        identifier = "" if raw_id is None else str(raw_id).strip()
        kind = field_value(payload, "kind")
        prompt = field_value(payload, "prompt")
        explanation = payload.get("explanation")
        model_answer = field_value(payload, "modelAnswer")
        return cls(
            id=identifier or f"q{index + 1}",
            kind=str(kind).strip() if kind is not None else "",
            prompt=str(prompt) if prompt is not None else "",
            options=_coerce_options(payload.get("options")),
            correct_option_index=_coerce_index(
                field_value(payload, "correctOptionIndex")
            ),
            explanation=str(explanation) if explanation is not None else None,
            model_answer=(
                str(model_answer) if model_answer is not None else None
            ),
        )


@dataclass(frozen=True)
class EvaluationResult:
    """Grade and feedback returned for an open-ended answer."""

    score: int
    feedback: str
    better_answer: str

    def to_dict(self) -> MutableMapping[str, Any]:
        return {
            "score": self.score,
            "feedback": self.feedback,
            "betterAnswer": self.better_answer,
        }


@dataclass(frozen=True)
class UserAnswer:
    """The recorded response to one question."""

    question_id: str
    kind: str
    value: int | str
    is_correct: bool | None = None
    evaluation: EvaluationResult | None = None

    @property
    def evaluation_score(self) -> int | None:
        if self.evaluation is None:
            return None
        return self.evaluation.score

    @property
    def points(self) -> int:
        """Contribution of this answer to the session total."""

        if self.kind == MULTIPLE_CHOICE:
            return 1 if self.is_correct else 0
        if self.kind == OPEN_ENDED and self.evaluation is not None:
            return self.evaluation.score
        return 0


@dataclass
class QuizSession:
    """Mutable in-progress quiz run owned by the controller."""

    id: str
    topic: str
    mode: str
    questions: tuple[Question, ...]
    current_index: int = 0
    answers: dict[str, UserAnswer] = field(default_factory=dict)
    created_at: str = field(default_factory=lambda: _timestamp())

    @property
    def total_questions(self) -> int:
        return len(self.questions)

    @property
    def current(self) -> Question:
        return self.questions[self.current_index]

    @property
    def is_last(self) -> bool:
        return self.current_index + 1 >= self.total_questions

    @property
    def total_score(self) -> int:
        # Raw sum: multiple-choice answers count 1 point each, open-ended
        # answers add their 0-100 grade. Mixed sessions are not normalized.
        return sum(answer.points for answer in self.answers.values())

    def answered_count(self) -> int:
        return len(self.answers)

    def answer_for(self, question: Question | None = None) -> UserAnswer | None:
        target = question or self.current
        return self.answers.get(target.id)

    def question_by_id(self, question_id: str) -> Question | None:
        for question in self.questions:
            if question.id == question_id:
                return question
        return None

    def score_display(self) -> str:
        return score_display(self.mode, self.total_score, self.total_questions)


@dataclass(frozen=True)
class HistoryItem:
    """Frozen snapshot of a completed session."""

    id: str
    topic: str
    mode: str
    total_score: int
    total_questions: int
    questions: tuple[Question, ...]
    created_at: str

    @classmethod
    def from_session(cls, session: QuizSession) -> "HistoryItem":
        return cls(
            id=session.id,
            topic=session.topic,
            mode=session.mode,
            total_score=session.total_score,
            total_questions=session.total_questions,
            questions=tuple(session.questions),
            created_at=_timestamp(),
        )

    def score_display(self) -> str:
        return score_display(self.mode, self.total_score, self.total_questions)

    def to_dict(self) -> MutableMapping[str, Any]:
        return {
            "id": self.id,
            "topic": self.topic,
            "mode": self.mode,
            "score": self.total_score,
            "totalQuestions": self.total_questions,
            "questions": [question.to_dict() for question in self.questions],
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "HistoryItem":
        raw_questions = payload.get("questions") or []
        if not isinstance(raw_questions, Sequence) or isinstance(
            raw_questions, (str, bytes)
        ):
            raw_questions = []
        questions = tuple(
            Question.from_dict(item, index=idx)
            for idx, item in enumerate(raw_questions)
            if isinstance(item, Mapping)
        )
        total = payload.get("totalQuestions", len(questions))
        return cls(
            id=str(payload.get("id", "")),
            topic=str(payload.get("topic", "")),
            mode=str(payload.get("mode", MIXED)),
            total_score=int(payload.get("score", 0) or 0),
            total_questions=int(total or 0),
            questions=questions,
            created_at=str(payload.get("createdAt", "")),
        )


@dataclass(frozen=True)
class GenerationRequest:
    """Parameters sent to the question service when a session starts."""

    topic: str
    mode: str
    count: int = 5

    def to_dict(self) -> MutableMapping[str, Any]:
        return {"topic": self.topic, "mode": self.mode, "count": self.count}


def score_display(mode: str, score: int, total: int) -> str:
    """Format a session score the way the summary and history views show it.

    Multiple-choice sessions show the share of correct answers as a
    percentage. Other modes show the mean grade per question.
    """

    if total <= 0:
        return "0%" if mode == MULTIPLE_CHOICE else "0"
    if mode == MULTIPLE_CHOICE:
        return f"{_round_half_up(score / total * 100)}%"
    return str(_round_half_up(score / total))


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _coerce_options(raw: Any) -> tuple[str, ...]:
    if not isinstance(raw, Sequence) or isinstance(raw, (str, bytes)):
        return ()
    options: list[str] = []
    for item in raw:
        if isinstance(item, Mapping):
            options.append(str(item.get("text", "")))
        else:
            options.append(str(item))
    return tuple(options)


def _coerce_index(raw: Any) -> int | None:
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw
    if isinstance(raw, float) and raw.is_integer():
        return int(raw)
    if isinstance(raw, str) and raw.strip().lstrip("-").isdigit():
        return int(raw.strip())
    return None


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()
