"""TOML-backed configuration for quizmaster.

The file groups related concerns into tables. Every key has a default, so an
absent config file is valid; unknown keys are rejected to catch typos early.
"""

from __future__ import annotations

import copy
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, MutableMapping, Optional

try:  # Python >= 3.11 ships ``tomllib`` in the stdlib.
    import tomllib
except ModuleNotFoundError as exc:  # pragma: no cover - should never happen
    raise RuntimeError("Python 3.11+ is required for tomllib support.") from exc

from . import workspace

__all__ = [
    "CONFIG_PATH_ENV",
    "CONFIG_FILENAME",
    "ConfigError",
    "OpenAIConfig",
    "GenerationConfig",
    "SessionConfig",
    "WeakAreasConfig",
    "LoggingConfig",
    "QuizMasterConfig",
    "load_config",
    "resolve_config_path",
    "config_template",
    "write_template",
    "default_tree",
]


CONFIG_PATH_ENV = "QUIZMASTER_CONFIG"
CONFIG_FILENAME = "quizmaster.toml"
_DIFFICULTIES = ("easy", "medium", "hard", "extreme")


class ConfigError(RuntimeError):
    """Raised when configuration parsing or validation fails."""


@dataclass(frozen=True)
class OpenAIConfig:
    generation_model: str
    analysis_model: str
    temperature: float
    max_output_tokens: int
    api_base: Optional[str]
    request_timeout_seconds: int


@dataclass(frozen=True)
class GenerationConfig:
    max_source_chars: int
    max_attempts: int
    base_delay_seconds: float
    default_difficulty: str
    default_question_count: int


@dataclass(frozen=True)
class SessionConfig:
    time_limit_seconds: int
    interactive: bool


@dataclass(frozen=True)
class WeakAreasConfig:
    history_limit: int
    threshold: int


@dataclass(frozen=True)
class LoggingConfig:
    level: str
    verbose: bool


@dataclass(frozen=True)
class QuizMasterConfig:
    data_home_override: Optional[Path]
    openai: OpenAIConfig
    generation: GenerationConfig
    session: SessionConfig
    weak_areas: WeakAreasConfig
    logging: LoggingConfig


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
        base_value = base[key]
        if isinstance(base_value, MutableMapping):
            if not isinstance(value, Mapping):
                raise ConfigError(
                    "Expected table for '{0}', found {1}.".format(
                        dotted,
                        type(value).__name__,
                    )
                )
            _merge_dict(base_value, value, path=f"{dotted}.")
        else:
            base[key] = value


def _require_positive_int(value: Any, *, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ConfigError(f"'{field}' must be a positive integer.")
    return value


def _require_int_range(
    value: Any, *, field: str, min_value: int, max_value: int
) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"'{field}' must be an integer.")
    if not (min_value <= value <= max_value):
        raise ConfigError(
            f"'{field}' must be between {min_value} and {max_value}."
        )
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
    if not (min_value <= number <= max_value):
        raise ConfigError(
            f"'{field}' must be between {min_value} and {max_value}."
        )
    return number


def _require_string(value: Any, *, field: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ConfigError(f"'{field}' must be a non-empty string.")
    return value.strip()


def _coerce_optional_string(value: Any, *, field: str) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str) or not value.strip():
        raise ConfigError(f"'{field}' must be a non-empty string when set.")
    return value.strip()


def _coerce_optional_path(value: Any, *, field: str) -> Optional[Path]:
    text = _coerce_optional_string(value, field=field)
    if text is None:
        return None
    return Path(text).expanduser().resolve()


def _build_openai(section: Mapping[str, Any]) -> OpenAIConfig:
    field = "providers.openai"
    return OpenAIConfig(
        generation_model=_require_string(
            section.get("generation_model"),
            field=f"{field}.generation_model",
        ),
        analysis_model=_require_string(
            section.get("analysis_model"), field=f"{field}.analysis_model"
        ),
        temperature=_require_float_range(
            section.get("temperature"),
            field=f"{field}.temperature",
            min_value=0.0,
            max_value=2.0,
        ),
        max_output_tokens=_require_positive_int(
            section.get("max_output_tokens"),
            field=f"{field}.max_output_tokens",
        ),
        api_base=_coerce_optional_string(
            section.get("api_base"), field=f"{field}.api_base"
        ),
        request_timeout_seconds=_require_positive_int(
            section.get("request_timeout_seconds"),
            field=f"{field}.request_timeout_seconds",
        ),
    )


def _build_generation(section: Mapping[str, Any]) -> GenerationConfig:
    difficulty = _require_string(
        section.get("default_difficulty"),
        field="generation.default_difficulty",
    ).lower()
    if difficulty not in _DIFFICULTIES:
        raise ConfigError(
            "generation.default_difficulty must be one of "
            + ", ".join(_DIFFICULTIES)
            + "."
        )
    return GenerationConfig(
        max_source_chars=_require_positive_int(
            section.get("max_source_chars"),
            field="generation.max_source_chars",
        ),
        max_attempts=_require_int_range(
            section.get("max_attempts"),
            field="generation.max_attempts",
            min_value=1,
            max_value=10,
        ),
        base_delay_seconds=_require_float_range(
            section.get("base_delay_seconds"),
            field="generation.base_delay_seconds",
            min_value=0.0,
            max_value=60.0,
        ),
        default_difficulty=difficulty,
        default_question_count=_require_int_range(
            section.get("default_question_count"),
            field="generation.default_question_count",
            min_value=1,
            max_value=50,
        ),
    )


def _build_session(section: Mapping[str, Any]) -> SessionConfig:
    return SessionConfig(
        time_limit_seconds=_require_positive_int(
            section.get("time_limit_seconds"),
            field="session.time_limit_seconds",
        ),
        interactive=_require_bool(
            section.get("interactive"), field="session.interactive"
        ),
    )


def _build_weak_areas(section: Mapping[str, Any]) -> WeakAreasConfig:
    return WeakAreasConfig(
        history_limit=_require_positive_int(
            section.get("history_limit"), field="weak_areas.history_limit"
        ),
        threshold=_require_int_range(
            section.get("threshold"),
            field="weak_areas.threshold",
            min_value=1,
            max_value=100,
        ),
    )


def _build_logging(section: Mapping[str, Any]) -> LoggingConfig:
    level = _require_string(section.get("level"), field="logging.level").upper()
    allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
    if level not in allowed:
        raise ConfigError(
            "logging.level must be one of "
            "DEBUG, INFO, WARNING, ERROR, CRITICAL."
        )
    verbose = _require_bool(section.get("verbose"), field="logging.verbose")
    return LoggingConfig(level=level, verbose=verbose)


def _build_config(tree: Mapping[str, Any]) -> QuizMasterConfig:
    providers = tree["providers"]
    return QuizMasterConfig(
        data_home_override=_coerce_optional_path(
            tree["paths"].get("data_home"), field="paths.data_home"
        ),
        openai=_build_openai(providers["openai"]),
        generation=_build_generation(tree["generation"]),
        session=_build_session(tree["session"]),
        weak_areas=_build_weak_areas(tree["weak_areas"]),
        logging=_build_logging(tree["logging"]),
    )


def _load_toml(path: Path) -> Mapping[str, Any]:
    try:
        with path.open("rb") as fh:
            return tomllib.load(fh)
    except FileNotFoundError as exc:
        raise ConfigError(f"Config file not found: {path}") from exc
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Failed to parse config TOML: {exc}") from exc


def resolve_config_path(
    *,
    explicit_path: Optional[Path] = None,
    env: Mapping[str, str] | None = None,
    workspace_path: Optional[Path] = None,
) -> tuple[Path, bool]:
    """Return the config path and whether it was requested explicitly."""

    env_map = os.environ if env is None else env
    if explicit_path is not None:
        return explicit_path.expanduser().resolve(), True
    env_override = env_map.get(CONFIG_PATH_ENV)
    if env_override:
        return Path(env_override).expanduser().resolve(), True
    layout = workspace.ensure_workspace(
        env=env_map, path=workspace_path, create=False
    )
    return layout.path_for("config") / CONFIG_FILENAME, False


def load_config(
    *,
    explicit_path: Optional[Path] = None,
    env: Mapping[str, str] | None = None,
    workspace_path: Optional[Path] = None,
) -> QuizMasterConfig:
    """Load the TOML config, applying defaults and validation.

    A missing file at the default location yields the defaults; a missing
    file that was requested explicitly is an error.
    """

    path, explicit = resolve_config_path(
        explicit_path=explicit_path, env=env, workspace_path=workspace_path
    )
    tree = default_tree()
    if explicit or path.exists():
        toml_data = _load_toml(path)
        _merge_dict(tree, toml_data)
    return _build_config(tree)


def default_tree() -> Dict[str, Any]:
    """Return a copy of the default configuration tree."""

    return copy.deepcopy(_DEFAULTS)


def config_template() -> str:
    """Return the TOML template recommended for new installs."""

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
    "paths": {
        "data_home": None,
    },
    "providers": {
        "openai": {
            "generation_model": "gpt-4o-mini",
            "analysis_model": "gpt-4o",
            "temperature": 0.2,
            "max_output_tokens": 4000,
            "api_base": None,
            "request_timeout_seconds": 60,
        },
    },
    "generation": {
        "max_source_chars": 15000,
        "max_attempts": 3,
        "base_delay_seconds": 1.0,
        "default_difficulty": "medium",
        "default_question_count": 10,
    },
    "session": {
        "time_limit_seconds": 600,
        "interactive": False,
    },
    "weak_areas": {
        "history_limit": 50,
        "threshold": 80,
    },
    "logging": {
        "level": "INFO",
        "verbose": False,
    },
}


_CONFIG_TEMPLATE = """
# quizmaster configuration

[paths]
# Set to override the default data directory (~/.quizmaster-data)
# data_home = "~/my-quiz-data"

[providers.openai]
# Model used to turn notes or topics into questions
generation_model = "gpt-4o-mini"
# Model used for post-quiz feedback and flashcards
analysis_model = "gpt-4o"
# Sampling temperature (0.0-2.0)
temperature = 0.2
max_output_tokens = 4000
# Optional API base override (leave blank for default)
# api_base = "https://api.openai.com/v1"
request_timeout_seconds = 60

[generation]
# Source text beyond this many characters is dropped before submission
max_source_chars = 15000
# Attempts per call when the service is rate limiting (backoff doubles)
max_attempts = 3
base_delay_seconds = 1.0
default_difficulty = "medium"
default_question_count = 10

[session]
# Countdown shown while taking a quiz; reaching zero does not submit
time_limit_seconds = 600
# Show correctness right after each answer and queue missed questions
interactive = false

[weak_areas]
# Number of most recent results to aggregate
history_limit = 50
# Topics below this accuracy percentage are reported
threshold = 80

[logging]
level = "INFO"
verbose = false
"""
