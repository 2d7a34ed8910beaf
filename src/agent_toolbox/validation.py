"""
Shared Validation Utilities

Argument validation used by every tool: a pure function from a tool's
params model and the raw call arguments to either validated params or a
list of human-readable violations. Tools raise ValidationError from the
violations themselves, so this module has no dependency on mcp_base.
"""

from __future__ import annotations

import os
from collections.abc import Iterable, Mapping
from typing import Any, TypeVar

import pydantic
from pydantic import BaseModel

TModel = TypeVar("TModel", bound=BaseModel)


# ─── Argument Validation ────────────────────────────────────────────────────


def validate_arguments(
    model: type[TModel],
    arguments: Mapping[str, Any] | None,
) -> tuple[TModel | None, list[str]]:
    """
    Validate raw call arguments against a params model.

    Returns (params, []) on success and (None, violations) on failure.
    Unknown argument names are ignored; type coercion follows pydantic's
    lax mode (e.g. "5" is accepted for an integer field).
    """
    if arguments is None:
        arguments = {}
    if not isinstance(arguments, Mapping):
        return None, [f"arguments must be an object, got {type(arguments).__name__}"]

    try:
        return model.model_validate(dict(arguments)), []
    except pydantic.ValidationError as exc:
        return None, [format_violation(err) for err in exc.errors()]


def format_violation(error: Mapping[str, Any]) -> str:
    """Render one pydantic error as '<field path>: <message>'."""
    loc = ".".join(str(part) for part in error.get("loc", ()))
    message = str(error.get("msg", "invalid value"))
    return f"{loc}: {message}" if loc else message


def missing_fields(params: BaseModel, names: Iterable[str]) -> list[str]:
    """Names of optional fields that an action requires but were not given."""
    return [name for name in names if getattr(params, name, None) is None]


# ─── Path Helpers ───────────────────────────────────────────────────────────


def normalize_path(p: str) -> str:
    """Expand ~ and make a path absolute without resolving symlinks."""
    return os.path.abspath(os.path.expanduser(p))
