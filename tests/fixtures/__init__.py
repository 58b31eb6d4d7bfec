"""Shared testing fixtures for the quiz-cards test suite."""

from .chat import FakeChatClient, completion  # noqa: F401
from .quiz import (  # noqa: F401
    ScriptedInput,
    ScriptedService,
    mcq,
    open_question,
    react_hooks_questions,
)

__all__ = [
    "FakeChatClient",
    "completion",
    "ScriptedInput",
    "ScriptedService",
    "mcq",
    "open_question",
    "react_hooks_questions",
]
