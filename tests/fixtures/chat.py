"""Chat-completions client double.

Production code only touches ``client.chat.completions.create(**kwargs)`` and
reads ``response.choices[0].message.content``, so the double mirrors exactly
that surface and records every request.
"""

from __future__ import annotations

from types import SimpleNamespace
from typing import Any, Dict, List, Union


def completion(content: Any) -> SimpleNamespace:
    """Build a response object shaped like the SDK's chat completion."""

    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))]
    )


class FakeChatClient:
    """Queue replies (strings, response objects or exceptions) in order."""

    def __init__(self) -> None:
        self.calls: List[Dict[str, Any]] = []
        self._queue: List[Union[str, BaseException, SimpleNamespace]] = []
        self.chat = SimpleNamespace(
            completions=SimpleNamespace(create=self._create)
        )

    def queue_response(self, content: str) -> None:
        self._queue.append(content)

    def queue_raw(self, response: SimpleNamespace) -> None:
        self._queue.append(response)

    def queue_error(self, error: BaseException) -> None:
        self._queue.append(error)

    @property
    def last_messages(self) -> List[Dict[str, str]]:
        return self.calls[-1]["messages"] if self.calls else []

    def _create(self, **kwargs: Any) -> SimpleNamespace:
        self.calls.append(kwargs)
        if not self._queue:
            raise AssertionError("FakeChatClient has no queued response")
        item = self._queue.pop(0)
        if isinstance(item, BaseException):
            raise item
        if isinstance(item, SimpleNamespace):
            return item
        return completion(item)
