"""Preview rendering and external command invocation.

Markdown is rendered to ANSI text with rich so fzf (--ansi) can show it in the
preview pane. External commands are templates where `{}` stands for the note
path or link target; a template without `{}` gets the argument appended.
"""

from __future__ import annotations

import logging
import shlex
import subprocess
from typing import TYPE_CHECKING

from rich.console import Console
from rich.markdown import Markdown
from rich.markup import escape

from notewalk.errors import NotewalkError
from notewalk.models import ColorScheme, RenderContext

if TYPE_CHECKING:
    from notewalk.note import Note

logger = logging.getLogger("notewalk.preview")

_PREVIEW_TIMEOUT = 10.0
_BODY_EXCERPT_LINES = 12

# (title, label, accent) styles per color scheme
_PALETTE: dict[ColorScheme, tuple[str, str, str]] = {
    ColorScheme.DARK: ("bold cyan", "dim", "yellow"),
    ColorScheme.LIGHT: ("bold blue", "dim", "magenta"),
}


def _console(render: RenderContext) -> Console:
    return Console(force_terminal=True, color_system="256", width=render.width, highlight=False)


def render_markdown(text: str, render: RenderContext) -> str:
    """Render markdown text to an ANSI string."""
    console = _console(render)
    with console.capture() as capture:
        console.print(Markdown(text, code_theme=render.code_theme))
    return capture.get()


def render_details(note: Note, forward: list[Note], backlinks: list[Note], render: RenderContext) -> str:
    """Header fields, graph neighbourhood and the first lines of the body."""
    title, label, accent = _PALETTE[render.color_scheme]
    console = _console(render)
    with console.capture() as capture:
        console.print(f"[{title}]{escape(note.name)}[/{title}]")
        console.print(f"[{label}]id[/{label}]      {escape(str(note.id))}")
        if note.matter.tags:
            tags = " ".join(f"#{t}" for t in note.matter.tags)
            console.print(f"[{label}]tags[/{label}]    [{accent}]{escape(tags)}[/{accent}]")
        console.print(f"[{label}]links →[/{label}] " + escape(", ".join(n.name for n in forward) or "-"))
        console.print(f"[{label}]links ←[/{label}] " + escape(", ".join(n.name for n in backlinks) or "-"))
        excerpt = "\n".join(note.content.splitlines()[:_BODY_EXCERPT_LINES]).strip()
        if excerpt:
            console.rule(style=label)
            console.print(Markdown(excerpt, code_theme=render.code_theme))
    return capture.get()


def _command_args(template: str, arg: str) -> list[str]:
    args = shlex.split(template)
    if not args:
        msg = "empty command template"
        raise NotewalkError(msg)
    if any("{}" in a for a in args):
        return [a.replace("{}", arg) for a in args]
    return [*args, arg]


def run_command(template: str, arg: str) -> str:
    """Run a preview command and return what it printed."""
    args = _command_args(template, arg)
    try:
        result = subprocess.run(args, capture_output=True, text=True, check=False, timeout=_PREVIEW_TIMEOUT)
    except (OSError, subprocess.TimeoutExpired) as exc:
        msg = f"preview command failed: {' '.join(args)}: {exc}"
        raise NotewalkError(msg) from exc
    if result.returncode != 0:
        logger.debug("preview command %s exited %d", args[0], result.returncode)
        return result.stdout or result.stderr
    return result.stdout


def open_target(template: str, target: str) -> None:
    """Hand a path or URL to the configured opener, inheriting the terminal."""
    args = _command_args(template, target)
    logger.info("opening %s with %s", target, args[0])
    try:
        subprocess.run(args, check=False)
    except OSError as exc:
        msg = f"open command failed: {' '.join(args)}: {exc}"
        raise NotewalkError(msg) from exc
