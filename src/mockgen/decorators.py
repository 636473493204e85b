"""Decorators for CLI command handlers.

Provides common error handling for typer commands: an AppError raised by
a command is logged, reported on stderr and turned into exit code 1.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from functools import wraps
from typing import ParamSpec, TypeVar

import typer

from mockgen.models import AppError

logger = logging.getLogger(__name__)

P = ParamSpec("P")
R = TypeVar("R")


def format_app_error(error: AppError) -> str:
    """Format an AppError for terminal output."""
    text = f"❌ [{error.code}] {error.message}"
    if error.details:
        text += f"\n   Details: {error.details}"
    return text


def handle_app_error(func: Callable[P, R]) -> Callable[P, R]:
    """Decorator to catch and report AppError exceptions.

    Wraps the command in a try-except block. If AppError is raised, prints
    a formatted error message and exits with status 1. Other exceptions
    are propagated.

    Usage:
        @app.command()
        @handle_app_error
        def my_command(url: str) -> None:
            ...

    Args:
        func: The command function to wrap.

    Returns:
        Wrapped function that converts AppError into typer.Exit(1).
    """

    @wraps(func)
    def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        try:
            return func(*args, **kwargs)
        except AppError as e:
            logger.error(
                "AppError in %s: category=%s, code=%s, message=%s",
                func.__name__,
                e.category.value,
                e.code,
                e.message,
            )
            typer.echo(format_app_error(e), err=True)
            raise typer.Exit(1) from e

    return wrapper
