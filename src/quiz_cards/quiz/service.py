"""Question generation and answer grading over a chat-completions API."""

from __future__ import annotations

import logging
import math
from typing import Any, Mapping, Optional, Tuple

from openai import OpenAIError

from ..core.ai import load_client
from ..core.config import QuizCardsConfig
from ..errors import ServiceError, ValidationError
from .models import (
    MULTIPLE_CHOICE,
    OPEN_ENDED,
    EvaluationResult,
    GenerationRequest,
    Question,
)
from .payload import parse_json_payload, validate_generated

__all__ = [
    "QuestionService",
    "build_generation_prompts",
    "build_evaluation_prompts",
]

_LOGGER = logging.getLogger("quiz_cards.service")

_MCQ_SHAPE = (
    '{"id": str, "kind": "multiple-choice", "prompt": str, '
    '"options": [str, str, str, str], "correctOptionIndex": int, '
    '"explanation": str}'
)
_OPEN_SHAPE = (
    '{"id": str, "kind": "open-ended", "prompt": str, "modelAnswer": str}'
)
_EVALUATION_SHAPE = '{"score": int, "feedback": str, "betterAnswer": str}'


def build_generation_prompts(
    request: GenerationRequest, *, language: str = "English"
) -> Tuple[str, str]:
    """Return the (system, user) prompts for a generation request."""

    sys_prompt = (
        "You are a professional quiz author. Always reply with valid JSON "
        "only, without Markdown code fences or any other text."
    )
    base = (
        f'Topic: "{request.topic}"\n'
        f"Count: {request.count} questions\n"
        f"Language: write everything in {language}.\n"
        "Difficulty: intermediate to advanced.\n"
        "Format: Markdown is allowed inside string fields.\n"
    )
    if request.mode == MULTIPLE_CHOICE:
        task = (
            "Create a set of multiple-choice questions.\n"
            "Requirements:\n"
            "1. Give exactly 4 options with a single correct answer.\n"
            "2. Explain why the correct answer is right.\n"
        )
        shape = f"[{_MCQ_SHAPE}]"
    elif request.mode == OPEN_ENDED:
        task = (
            "Create a set of open-ended questions (interview or concept "
            "questions).\n"
            "Requirements:\n"
            "1. Questions must need real reasoning, not yes/no answers.\n"
            "2. Provide a concise, ideal reference answer as modelAnswer.\n"
        )
        shape = f"[{_OPEN_SHAPE}]"
    else:
        task = (
            "Create a mixed set of multiple-choice and open-ended "
            "questions.\n"
            "Requirements:\n"
            "1. Roughly half of each kind, interleaved.\n"
            "2. Multiple-choice items need 4 options, correctOptionIndex "
            "and an explanation.\n"
            "3. Open-ended items need a modelAnswer.\n"
            "4. Every prompt must state the question clearly.\n"
        )
        shape = f"[{_MCQ_SHAPE} or {_OPEN_SHAPE}]"
    user_prompt = (
        f"{task}{base}\n"
        f"Return a JSON array shaped like:\n{shape}\n"
        "Ids must be unique strings. Return the bare JSON array."
    )
    return sys_prompt, user_prompt


def build_evaluation_prompts(
    prompt: str, answer: str, topic: str, *, language: str = "English"
) -> Tuple[str, str]:
    """Return the (system, user) prompts for grading an open-ended answer."""

    sys_prompt = (
        "You are a professional grader. Always reply with valid JSON only, "
        "without Markdown code fences or any other text."
    )
    user_prompt = (
        "You are a strict but helpful tutor.\n"
        f"Topic: {topic}\n"
        f"Question: {prompt}\n"
        f"User answer: {answer}\n\n"
        "Tasks:\n"
        "1. Score the answer from 0 to 100 for accuracy and completeness.\n"
        f"2. Give constructive feedback in {language} (Markdown allowed), "
        "pointing out what is missing or wrong.\n"
        "3. Suggest a better answer.\n\n"
        f"Return a JSON object shaped like:\n{_EVALUATION_SHAPE}"
    )
    return sys_prompt, user_prompt


class QuestionService:
    """Generate question batches and grade open-ended answers."""

    def __init__(
        self,
        client: Any,
        *,
        model: str = "google/gemini-2.5-flash",
        temperature: float = 0.7,
        language: str = "English",
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._client = client
        self.model = model
        self.temperature = temperature
        self.language = language
        self._logger = logger or _LOGGER

    @classmethod
    def from_config(
        cls,
        config: QuizCardsConfig,
        *,
        client: Any = None,
        logger: Optional[logging.Logger] = None,
    ) -> "QuestionService":
        """Build a service, creating the API client unless one is given.

        Raises ``ConfigurationError`` when no API key is available.
        """

        resolved = client if client is not None else load_client(
            config.provider
        )
        return cls(
            resolved,
            model=config.provider.model,
            temperature=config.provider.temperature,
            language=config.quiz.language,
            logger=logger,
        )

    def generate_questions(
        self, request: GenerationRequest
    ) -> tuple[Question, ...]:
        sys_prompt, user_prompt = build_generation_prompts(
            request, language=self.language
        )
        self._logger.info(
            "Requesting questions",
            extra={"request": request.to_dict(), "model": self.model},
        )
        content = self._complete(sys_prompt, user_prompt)
        try:
            questions = validate_generated(parse_json_payload(content))
        except ValidationError:
            self._logger.warning(
                "Rejected generated question batch",
                extra={"preview": content[:200]},
            )
            raise
        self._logger.info(
            "Received questions", extra={"count": len(questions)}
        )
        return questions

    def evaluate_answer(
        self, prompt: str, answer: str, topic: str
    ) -> EvaluationResult:
        sys_prompt, user_prompt = build_evaluation_prompts(
            prompt, answer, topic, language=self.language
        )
        content = self._complete(sys_prompt, user_prompt)
        try:
            payload = parse_json_payload(content)
        except ValidationError as exc:
            raise ServiceError(
                "Evaluation response could not be parsed", details=str(exc)
            ) from exc
        result = _build_evaluation(payload)
        self._logger.info(
            "Evaluated answer", extra={"topic": topic, "score": result.score}
        )
        return result

    def _complete(self, system_prompt: str, user_prompt: str) -> str:
        try:
            response = self._client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                temperature=self.temperature,
            )
        except OpenAIError as exc:
            self._logger.error(
                "Chat completion failed", extra={"error": str(exc)}
            )
            raise ServiceError(
                "Question service request failed",
                status=getattr(exc, "status_code", None),
                details=getattr(exc, "message", None) or str(exc),
            ) from exc
        try:
            content = response.choices[0].message.content
        except (AttributeError, IndexError, TypeError) as exc:
            raise ServiceError(
                "Question service returned a malformed completion"
            ) from exc
        if not content or not str(content).strip():
            raise ServiceError("Question service returned an empty reply")
        return str(content).strip()


def _build_evaluation(payload: Any) -> EvaluationResult:
    if not isinstance(payload, Mapping):
        raise ServiceError(
            "Evaluation response must be a JSON object",
            details=type(payload).__name__,
        )
    score = _coerce_score(payload.get("score"))
    if score is None:
        raise ServiceError(
            "Evaluation response is missing a numeric score",
            details=repr(payload.get("score")),
        )
    better = payload.get("betterAnswer", payload.get("better_answer"))
    return EvaluationResult(
        score=score,
        feedback=str(payload.get("feedback") or ""),
        better_answer=str(better or ""),
    )


def _coerce_score(raw: Any) -> Optional[int]:
    if isinstance(raw, bool):
        return None
    if isinstance(raw, str):
        try:
            raw = float(raw.strip())
        except ValueError:
            return None
    if not isinstance(raw, (int, float)) or not math.isfinite(raw):
        return None
    return max(0, min(100, int(round(raw))))
