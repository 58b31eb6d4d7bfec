"""TOML configuration for quiz-cards.

The file is optional: defaults cover every key, and a user file only needs
the values it overrides. Unknown keys are rejected so typos do not silently
fall back to defaults.
"""

from __future__ import annotations

import copy
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, MutableMapping, Optional

try:  # Python 3.11+
    import tomllib
except ModuleNotFoundError as exc:  # pragma: no cover - should never happen
    raise RuntimeError("Python 3.11+ required for tomllib support") from exc

from ..errors import ConfigurationError

__all__ = [
    "CONFIG_PATH_ENV",
    "CONFIG_FILENAME",
    "ConfigError",
    "ProviderConfig",
    "QuizConfig",
    "LoggingConfig",
    "QuizCardsConfig",
    "load_config",
    "default_config",
    "config_template",
    "write_template",
]


CONFIG_PATH_ENV = "QUIZ_CARDS_CONFIG"
CONFIG_FILENAME = "quiz-cards.toml"

_MODES = ("multiple-choice", "open-ended", "mixed")
_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class ConfigError(ConfigurationError):
    """Raised when configuration parsing or validation fails."""


@dataclass(frozen=True)
class ProviderConfig:
    api_base: str
    api_key_env: str
    model: str
    temperature: float
    app_url: Optional[str]
    app_title: Optional[str]


@dataclass(frozen=True)
class QuizConfig:
    question_count: int
    default_mode: str
    language: str


@dataclass(frozen=True)
class LoggingConfig:
    level: str
    verbose: bool


@dataclass(frozen=True)
class QuizCardsConfig:
    provider: ProviderConfig
    quiz: QuizConfig
    logging: LoggingConfig
    source: Optional[Path] = None


def _merge_dict(
    base: MutableMapping[str, Any],
    override: Mapping[str, Any],
    *,
    path: str = "",
) -> None:
    for key, value in override.items():
        dotted = f"{path}{key}"
        if key not in base:
            raise ConfigError(f"Unknown configuration key '{dotted}'.")
        if isinstance(base[key], MutableMapping):
            if not isinstance(value, Mapping):
                raise ConfigError(
                    "Expected table for '{0}', found {1}.".format(
                        dotted, type(value).__name__
                    )
                )
            _merge_dict(base[key], value, path=f"{dotted}.")
        else:
            base[key] = value


def _require_string(value: Any, *, field: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ConfigError(f"'{field}' must be a non-empty string.")
    return value.strip()


def _optional_string(value: Any, *, field: str) -> Optional[str]:
    if value is None:
        return None
    return _require_string(value, field=field)


def _require_positive_int(value: Any, *, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ConfigError(f"'{field}' must be a positive integer.")
    return value


def _require_bool(value: Any, *, field: str) -> bool:
    if not isinstance(value, bool):
        raise ConfigError(f"'{field}' must be a boolean.")
    return value


def _require_float_range(
    value: Any, *, field: str, min_value: float, max_value: float
) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"'{field}' must be a number.")
    number = float(value)
    if not min_value <= number <= max_value:
        raise ConfigError(
            f"'{field}' must be between {min_value} and {max_value}."
        )
    return number


def _build_provider(section: Mapping[str, Any]) -> ProviderConfig:
    return ProviderConfig(
        api_base=_require_string(
            section.get("api_base"), field="provider.api_base"
        ).rstrip("/"),
        api_key_env=_require_string(
            section.get("api_key_env"), field="provider.api_key_env"
        ),
        model=_require_string(section.get("model"), field="provider.model"),
        temperature=_require_float_range(
            section.get("temperature"),
            field="provider.temperature",
            min_value=0.0,
            max_value=2.0,
        ),
        app_url=_optional_string(
            section.get("app_url"), field="provider.app_url"
        ),
        app_title=_optional_string(
            section.get("app_title"), field="provider.app_title"
        ),
    )


def _build_quiz(section: Mapping[str, Any]) -> QuizConfig:
    mode = _require_string(section.get("default_mode"), field="quiz.default_mode")
    if mode not in _MODES:
        raise ConfigError(
            "quiz.default_mode must be one of " + ", ".join(_MODES) + "."
        )
    return QuizConfig(
        question_count=_require_positive_int(
            section.get("question_count"), field="quiz.question_count"
        ),
        default_mode=mode,
        language=_require_string(section.get("language"), field="quiz.language"),
    )


def _build_logging(section: Mapping[str, Any]) -> LoggingConfig:
    level = _require_string(section.get("level"), field="logging.level").upper()
    if level not in _LEVELS:
        raise ConfigError(
            "logging.level must be one of " + ", ".join(_LEVELS) + "."
        )
    verbose = _require_bool(section.get("verbose"), field="logging.verbose")
    return LoggingConfig(level=level, verbose=verbose)


def _build_config(
    tree: Mapping[str, Any], *, source: Optional[Path]
) -> QuizCardsConfig:
    return QuizCardsConfig(
        provider=_build_provider(tree["provider"]),
        quiz=_build_quiz(tree["quiz"]),
        logging=_build_logging(tree["logging"]),
        source=source,
    )


def _load_toml(path: Path) -> Mapping[str, Any]:
    try:
        with path.open("rb") as fh:
            return tomllib.load(fh)
    except FileNotFoundError as exc:
        raise ConfigError(f"Config file not found: {path}") from exc
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Failed to parse config TOML: {exc}") from exc


def load_config(
    *,
    explicit_path: Optional[Path] = None,
    env: Mapping[str, str] | None = None,
    config_dir: Optional[Path] = None,
) -> QuizCardsConfig:
    """Load configuration, applying defaults and validation.

    Lookup order: ``explicit_path``, then ``QUIZ_CARDS_CONFIG``, then
    ``quiz-cards.toml`` inside ``config_dir``. Only the last location may be
    absent, in which case the defaults are returned.
    """

    env_map = os.environ if env is None else env
    required = True
    if explicit_path is not None:
        path: Optional[Path] = explicit_path.expanduser()
    elif env_map.get(CONFIG_PATH_ENV):
        path = Path(env_map[CONFIG_PATH_ENV]).expanduser()
    elif config_dir is not None:
        path = config_dir / CONFIG_FILENAME
        required = False
    else:
        path = None

    tree = copy.deepcopy(_DEFAULTS)
    if path is not None and (required or path.exists()):
        data = _load_toml(path)
        _merge_dict(tree, data)
    else:
        path = None
    return _build_config(tree, source=path)


def default_config() -> QuizCardsConfig:
    return _build_config(copy.deepcopy(_DEFAULTS), source=None)


def config_template() -> str:
    return _CONFIG_TEMPLATE.strip() + "\n"


def write_template(
    path: Path, *, overwrite: bool = False, mode: int = 0o600
) -> Path:
    """Write the default template to ``path``."""

    path.parent.mkdir(parents=True, exist_ok=True)
    if path.exists() and not overwrite:
        raise ConfigError(f"Config already exists: {path}")
    with path.open("w", encoding="utf-8") as fh:
        fh.write(config_template())
    try:
        path.chmod(mode)
    except PermissionError:
        pass
    return path


_DEFAULTS: Dict[str, Any] = {
    "provider": {
        "api_base": "https://openrouter.ai/api/v1",
        "api_key_env": "OPENROUTER_API_KEY",
        "model": "google/gemini-2.5-flash",
        "temperature": 0.7,
        "app_url": "http://localhost:3000",
        "app_title": "Quiz Cards",
    },
    "quiz": {
        "question_count": 5,
        "default_mode": "mixed",
        "language": "English",
    },
    "logging": {
        "level": "INFO",
        "verbose": False,
    },
}


_CONFIG_TEMPLATE = """
# quiz-cards configuration

[provider]
# Any OpenAI-compatible chat completions endpoint
api_base = "https://openrouter.ai/api/v1"
# Environment variable holding the API key (a .env file is also read)
api_key_env = "OPENROUTER_API_KEY"
model = "google/gemini-2.5-flash"
# Sampling temperature (0.0-2.0)
temperature = 0.7
# Attribution headers sent to OpenRouter
app_url = "http://localhost:3000"
app_title = "Quiz Cards"

[quiz]
# Questions requested per generated quiz
question_count = 5
# multiple-choice, open-ended or mixed
default_mode = "mixed"
# Language the questions and feedback are written in
language = "English"

[logging]
level = "INFO"
verbose = false
"""
