"""Core shared helpers for quizmaster commands."""

from __future__ import annotations

from .ai import load_client
from .config import (
    ConfigError,
    QuizMasterConfig,
    load_config,
    write_template,
)
from .logging import JsonLogFormatter, configure_logger, get_logger
from .workspace import (
    WORKSPACE_ENV,
    WorkspaceError,
    WorkspaceLayout,
    ensure_workspace,
)

__all__ = [
    "load_client",
    "ConfigError",
    "QuizMasterConfig",
    "load_config",
    "write_template",
    "configure_logger",
    "get_logger",
    "JsonLogFormatter",
    "ensure_workspace",
    "WorkspaceLayout",
    "WorkspaceError",
    "WORKSPACE_ENV",
]
