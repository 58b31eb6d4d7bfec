"""Quiz session state machine: lifecycle, answer recording and scoring.

The controller walks ``setup -> loading -> active -> summary`` with an
``error`` state reachable from ``loading`` and from a failed import. It is
the only writer of the active :class:`~quiz_cards.quiz.models.QuizSession`;
the presentation layer reads state from it and forwards user intents.
"""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Any, Callable, Literal, Optional, Protocol, Sequence

from ..errors import (
    EvaluationError,
    EvaluationPending,
    HistoryError,
    InvalidTransition,
    QuizError,
    ServiceError,
    UnknownQuestion,
    ValidationError,
)
from .history import HistoryStore
from .models import (
    MULTIPLE_CHOICE,
    OPEN_ENDED,
    QUIZ_MODES,
    EvaluationResult,
    GenerationRequest,
    HistoryItem,
    Question,
    QuizSession,
    UserAnswer,
)
from .payload import (
    check_questions,
    infer_mode,
    load_import_text,
    parse_import,
)

__all__ = [
    "SessionState",
    "QuestionSource",
    "SessionIdFactory",
    "QuizController",
]

SessionState = Literal["setup", "loading", "active", "summary", "error"]

_LOGGER = logging.getLogger("quiz_cards.session")


class QuestionSource(Protocol):
    """What the controller needs from the question/evaluation service."""

    def generate_questions(
        self, request: GenerationRequest
    ) -> Sequence[Question]: ...

    def evaluate_answer(
        self, prompt: str, answer: str, topic: str
    ) -> EvaluationResult: ...


class SessionIdFactory:
    """Millisecond timestamps as ids, bumped so a process never repeats one."""

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._last = 0

    def __call__(self) -> str:
        candidate = int(self._clock() * 1000)
        if candidate <= self._last:
            candidate = self._last + 1
        self._last = candidate
        return str(candidate)


class QuizController:
    """Owns the quiz lifecycle for a single user."""

    def __init__(
        self,
        *,
        service: Optional[QuestionSource],
        history: HistoryStore,
        question_count: int = 5,
        id_factory: Optional[Callable[[], str]] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._service = service
        self._history = history
        self._question_count = question_count
        self._new_id = id_factory or SessionIdFactory()
        self._logger = logger or _LOGGER
        self._state: SessionState = "setup"
        self._session: Optional[QuizSession] = None
        self._pending: Optional[GenerationRequest] = None
        self._evaluating: Optional[str] = None
        self.topic = ""
        self.error_message = ""
        self.last_history_item: Optional[HistoryItem] = None

    # -- read-only views -------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def session(self) -> Optional[QuizSession]:
        return self._session

    @property
    def pending_request(self) -> Optional[GenerationRequest]:
        return self._pending

    @property
    def evaluating(self) -> Optional[str]:
        """Id of the question whose evaluation is in flight, if any."""

        return self._evaluating

    @property
    def total_score(self) -> int:
        return self._session.total_score if self._session else 0

    def require_session(self) -> QuizSession:
        if self._session is None:
            raise InvalidTransition("read the session", self._state)
        return self._session

    # -- session start -----------------------------------------------------

    def begin(
        self, topic: str, mode: str, count: Optional[int] = None
    ) -> GenerationRequest:
        """Validate setup input and move to ``loading``."""

        self._require("start a quiz", "setup")
        cleaned = (topic or "").strip()
        if not cleaned:
            raise ValidationError("Enter a topic to generate questions.")
        if mode not in QUIZ_MODES:
            raise ValidationError(
                f"Unknown quiz mode '{mode}'; expected one of "
                + ", ".join(QUIZ_MODES)
                + "."
            )
        request = GenerationRequest(
            topic=cleaned,
            mode=mode,
            count=count if count is not None else self._question_count,
        )
        self.topic = cleaned
        self._pending = request
        self._transition("loading", request=request.to_dict())
        return request

    def resolve(self, questions: Sequence[Question]) -> SessionState:
        """Finish ``loading`` with a generated question list."""

        self._require("receive questions", "loading")
        request = self._pending
        assert request is not None
        if not questions:
            self._fail_loading("Question service returned no questions.")
            return self._state
        try:
            check_questions(questions)
        except ValidationError as exc:
            self._logger.warning(
                "Rejected question batch", extra={"error": str(exc)}
            )
            self._fail_loading(str(exc))
            return self._state
        self._pending = None
        self._session = QuizSession(
            id=self._new_id(),
            topic=request.topic,
            mode=request.mode,
            questions=tuple(questions),
        )
        self._transition("active", session_id=self._session.id)
        return self._state

    def fail(self, error: BaseException | str) -> None:
        """Finish ``loading`` with an error."""

        self._require("report a loading failure", "loading")
        self._fail_loading(str(error) or "Failed to generate the quiz.")

    def start(
        self, topic: str, mode: str, count: Optional[int] = None
    ) -> SessionState:
        """Generate a new session synchronously.

        Ends in ``active`` on success or ``error`` when the service fails or
        returns an invalid batch. Setup validation errors propagate and
        leave the controller in ``setup``.
        """

        request = self.begin(topic, mode, count)
        if self._service is None:
            self.fail("No question service is configured.")
            return self._state
        try:
            questions = self._service.generate_questions(request)
        except QuizError as exc:
            self._logger.warning(
                "Question generation failed",
                extra={"error": str(exc), "type": type(exc).__name__},
            )
            self.fail(exc)
            return self._state
        self.resolve(questions)
        return self._state

    # -- imports and replays -----------------------------------------------

    def import_questions(self, payload: Any, topic: str) -> SessionState:
        """Replace the session with an externally supplied question set."""

        self._require("import questions", "setup", "active")
        try:
            questions = parse_import(payload)
        except ValidationError as exc:
            return self._fail_import(str(exc))
        return self._activate_import(questions, topic)

    def import_file(self, path: Path) -> SessionState:
        """Import questions from a JSON file; the file stem becomes the topic."""

        self._require("import questions", "setup", "active")
        try:
            text = Path(path).read_text(encoding="utf-8")
            questions = load_import_text(text)
        except (OSError, UnicodeDecodeError) as exc:
            return self._fail_import(f"Import failed: {exc}")
        except ValidationError as exc:
            return self._fail_import(str(exc))
        return self._activate_import(questions, _topic_from_path(Path(path)))

    def replay(self, item: HistoryItem) -> QuizSession:
        """Start over the questions of a history entry."""

        self._require("replay a history entry", "setup")
        if not item.questions:
            raise ValidationError(
                f"History entry '{item.id}' has no questions to replay."
            )
        self.topic = item.topic
        self._session = QuizSession(
            id=item.id,
            topic=item.topic,
            mode=item.mode,
            questions=tuple(item.questions),
        )
        self._transition("active", session_id=item.id, replay=True)
        return self._session

    # -- answering ---------------------------------------------------------

    def answer(self, question_id: str, value: int | str) -> UserAnswer:
        """Record the answer to ``question_id``.

        A question that already has an answer keeps it; the saved answer is
        returned and no evaluation call is made.
        """

        self._require("answer", "active")
        session = self.require_session()
        question = session.question_by_id(question_id)
        if question is None:
            raise UnknownQuestion(question_id)
        existing = session.answers.get(question_id)
        if existing is not None:
            return existing
        if self._evaluating is not None:
            raise EvaluationPending(
                f"Evaluation for question '{self._evaluating}' is still "
                "running."
            )

        if question.kind == MULTIPLE_CHOICE:
            recorded = self._answer_multiple_choice(question, value)
        elif question.kind == OPEN_ENDED:
            recorded = self._answer_open_ended(session, question, value)
        else:
            raise ValidationError(
                f"Question '{question.id}' has unsupported kind "
                f"{question.kind!r}."
            )
        self._record(recorded)
        return recorded

    def answer_current(self, value: int | str) -> UserAnswer:
        return self.answer(self.require_session().current.id, value)

    def _answer_multiple_choice(
        self, question: Question, value: int | str
    ) -> UserAnswer:
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValidationError(
                "Multiple-choice answers must be an option index."
            )
        if not question.options:
            raise ValidationError(f"Question '{question.id}' has no options.")
        if not 0 <= value < len(question.options):
            raise ValidationError(
                f"Option {value} is out of range for question "
                f"'{question.id}'."
            )
        return UserAnswer(
            question_id=question.id,
            kind=MULTIPLE_CHOICE,
            value=value,
            is_correct=value == question.correct_option_index,
        )

    def _answer_open_ended(
        self, session: QuizSession, question: Question, value: int | str
    ) -> UserAnswer:
        if not isinstance(value, str) or not value.strip():
            raise ValidationError("Type an answer before submitting.")
        if self._service is None:
            raise EvaluationError("No evaluation service is configured.")
        self._evaluating = question.id
        try:
            result = self._service.evaluate_answer(
                question.prompt, value, session.topic
            )
        except ServiceError as exc:
            self._logger.warning(
                "Evaluation failed",
                extra={"question_id": question.id, "error": str(exc)},
            )
            if isinstance(exc, EvaluationError):
                raise
            raise EvaluationError(
                str(exc.args[0]) if exc.args else "Evaluation failed",
                status=exc.status,
                details=exc.details,
            ) from exc
        finally:
            self._evaluating = None
        return UserAnswer(
            question_id=question.id,
            kind=OPEN_ENDED,
            value=value,
            evaluation=result,
        )

    def _record(self, answer: UserAnswer) -> None:
        session = self.require_session()
        session.answers[answer.question_id] = answer
        self._logger.info(
            "Recorded answer",
            extra={
                "session_id": session.id,
                "question_id": answer.question_id,
                "points": answer.points,
                "total_score": session.total_score,
            },
        )

    # -- navigation --------------------------------------------------------

    def next(self) -> SessionState:
        """Advance, or complete the session from the last question."""

        self._require("advance", "active")
        session = self.require_session()
        if session.current_index + 1 < session.total_questions:
            session.current_index += 1
            return self._state
        self._complete(session)
        return self._state

    def prev(self) -> SessionState:
        self._require("go back", "active")
        session = self.require_session()
        if session.current_index > 0:
            session.current_index -= 1
        return self._state

    def exit(self) -> SessionState:
        """Abandon the active session without saving it."""

        self._require("exit", "active")
        self._session = None
        self.last_history_item = None
        self._transition("setup", discarded=True)
        return self._state

    def retry(self) -> QuizSession:
        """Retake the finished session's questions from the start."""

        self._require("retry", "summary")
        session = self.require_session()
        session.current_index = 0
        session.answers = {}
        self._transition("active", session_id=session.id, retry=True)
        return session

    def reset(self) -> SessionState:
        self._require("reset", "summary")
        self._session = None
        self.topic = ""
        self.error_message = ""
        self.last_history_item = None
        self._transition("setup")
        return self._state

    def acknowledge(self) -> SessionState:
        self._require("acknowledge the error", "error")
        self.error_message = ""
        self._transition("setup")
        return self._state

    # -- helpers -----------------------------------------------------------

    def _complete(self, session: QuizSession) -> None:
        item = HistoryItem.from_session(session)
        self.last_history_item = item
        try:
            self._history.insert_front(item)
        except HistoryError as exc:
            self._logger.error(
                "Failed to save history",
                extra={"session_id": session.id, "error": str(exc)},
            )
        self._transition(
            "summary",
            session_id=session.id,
            total_score=item.total_score,
            total_questions=item.total_questions,
        )

    def _activate_import(
        self, questions: Sequence[Question], topic: str
    ) -> SessionState:
        mode = infer_mode(questions)
        self.topic = topic
        self.error_message = ""
        self._session = QuizSession(
            id=self._new_id(),
            topic=topic,
            mode=mode,
            questions=tuple(questions),
        )
        self._transition(
            "active",
            session_id=self._session.id,
            imported=len(questions),
            mode=mode,
        )
        return self._state

    def _fail_import(self, message: str) -> SessionState:
        self._session = None
        self.error_message = message
        self._transition("error", error=message)
        return self._state

    def _fail_loading(self, message: str) -> None:
        self._pending = None
        self._session = None
        self.error_message = message
        self._transition("error", error=message)

    def _require(self, operation: str, *states: SessionState) -> None:
        if self._state not in states:
            raise InvalidTransition(operation, self._state)

    def _transition(self, target: SessionState, **context: Any) -> None:
        previous = self._state
        self._state = target
        self._logger.info(
            "Quiz state %s -> %s",
            previous,
            target,
            extra={"transition": {"from": previous, "to": target, **context}},
        )


def _topic_from_path(path: Path) -> str:
    name = path.name
    if name.lower().endswith(".json"):
        name = name[: -len(".json")]
    return name or "Imported quiz"
