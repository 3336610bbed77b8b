"""Persistence for quizzes, flashcard sets and quiz results."""

from __future__ import annotations

from .base import DocumentStore, NotFoundError, PersistenceError
from .json_store import JsonDocumentStore

__all__ = [
    "DocumentStore",
    "JsonDocumentStore",
    "NotFoundError",
    "PersistenceError",
]
