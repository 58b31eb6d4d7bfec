from ._main import build_arg_parser
from .console import parse_session_command, run_quiz_session
from .history import (
    MAX_HISTORY_ITEMS,
    HistoryStore,
    InMemoryHistoryStore,
    JsonHistoryStore,
)
from .models import (
    EvaluationResult,
    GenerationRequest,
    HistoryItem,
    Question,
    QuizSession,
    UserAnswer,
    score_display,
)
from .payload import (
    export_template,
    infer_mode,
    parse_import,
    parse_json_payload,
    validate_generated,
)
from .service import QuestionService
from .session import QuizController, SessionIdFactory

__all__ = [
    "build_arg_parser",
    "parse_session_command",
    "run_quiz_session",
    "MAX_HISTORY_ITEMS",
    "HistoryStore",
    "InMemoryHistoryStore",
    "JsonHistoryStore",
    "EvaluationResult",
    "GenerationRequest",
    "HistoryItem",
    "Question",
    "QuizSession",
    "UserAnswer",
    "score_display",
    "export_template",
    "infer_mode",
    "parse_import",
    "parse_json_payload",
    "validate_generated",
    "QuestionService",
    "QuizController",
    "SessionIdFactory",
]
