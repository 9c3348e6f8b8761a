"""CLI sub-commands and the state they share."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import typer

from datamirror.exceptions import MirrorError
from datamirror.output import get_terminal


@dataclass
class CliState:
    """Global options the root callback stores in ``ctx.obj``."""

    cache_dir: Optional[str] = None
    force: bool = False

    @classmethod
    def of(cls, ctx: typer.Context) -> CliState:
        return ctx.obj if isinstance(ctx.obj, cls) else cls()


def fail(exc: MirrorError) -> typer.Exit:
    """Report *exc* on stderr and return the exit carrying its code."""
    get_terminal().error(str(exc))
    return typer.Exit(code=exc.exit_code)
