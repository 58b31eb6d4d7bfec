"""Chat-completions client construction."""

from __future__ import annotations

import os
from typing import Any, Dict, Mapping

from dotenv import find_dotenv, load_dotenv
from openai import OpenAI

from ..errors import ConfigurationError
from .config import ProviderConfig

__all__ = ["load_client"]


def load_client(
    provider: ProviderConfig, *, env: Mapping[str, str] | None = None
) -> Any:
    """Initialize an OpenAI-compatible client from config and environment.

    The API key is read from the variable named by ``provider.api_key_env``
    after loading the nearest ``.env`` file above the working directory.
    """

    if env is None:
        load_dotenv(find_dotenv(usecwd=True))
        env = os.environ
    api_key = (env.get(provider.api_key_env) or "").strip()
    if not api_key:
        raise ConfigurationError(
            f"{provider.api_key_env} not found in environment. "
            "Set it or add it to .env"
        )
    headers: Dict[str, str] = {}
    if provider.app_url:
        headers["HTTP-Referer"] = provider.app_url
    if provider.app_title:
        headers["X-Title"] = provider.app_title
    return OpenAI(
        api_key=api_key,
        base_url=provider.api_base,
        default_headers=headers or None,
    )
