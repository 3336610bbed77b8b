"""OpenAI client construction."""

from __future__ import annotations

import os

from dotenv import load_dotenv
from openai import OpenAI

__all__ = ["load_client"]


def load_client(
    *, api_base: str | None = None, timeout: float | None = None
) -> OpenAI:
    """Initialize an OpenAI client using environment-derived credentials.

    Call once at process start and pass the client to the components that
    need it.
    """
    load_dotenv()
    api_key = os.getenv("OPENAI_API_KEY")
    if not api_key:
        raise RuntimeError(
            "OPENAI_API_KEY not found in environment. Set it or add to .env"
        )
    kwargs: dict[str, object] = {"api_key": api_key}
    if api_base:
        kwargs["base_url"] = api_base
    if timeout is not None:
        kwargs["timeout"] = timeout
    return OpenAI(**kwargs)
