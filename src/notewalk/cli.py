"""notewalk CLI — markdown notes, a SQLite link graph, fzf navigation.

Commands:
    notewalk init [NAME]              create notewalk.toml + notes/ and the index
    notewalk new NAME [-t TAG]        create a note
    notewalk explore                  navigate the note graph (explore/surf modes)
    notewalk surf NAME                surf the links inside one note
    notewalk select                   pick a note, print its name
    notewalk link [--from NAME]       pick two notes, record source -> target
    notewalk unlink [--from NAME]     pick two notes, remove source -> target
    notewalk tag add|remove NAME TAG  edit a note's tags
    notewalk rename NAME NEW          rename a note (file, index, backlinking headers)
    notewalk remove NAME              delete a note
    notewalk reindex                  rebuild the index from note headers
    notewalk status                   counts and paths
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import TYPE_CHECKING, TypeVar

import click

from notewalk.config import NWConfig, init_config, load_config
from notewalk.context import NavContext
from notewalk.errors import Cancelled, NoteNotFoundError, NotewalkError
from notewalk.graph import remove_note, rename_note, run_link, run_unlink, select_note
from notewalk.note import Note
from notewalk.session import explore_session, surf_session
from notewalk.storage import SqliteStorage

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

T = TypeVar("T")

_EXIT_CANCELLED = 130

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _load_cfg() -> NWConfig:
    try:
        return load_config()
    except Exception as exc:
        raise click.ClickException(str(exc)) from exc


def _ask(prompt: str, default: str) -> str:
    return click.prompt(prompt, default=default, err=True)


def _run(main: Callable[[NWConfig, SqliteStorage], Awaitable[T]]) -> T:
    """Open storage, run one async command, map failures to click errors."""
    cfg = _load_cfg()
    try:
        storage = SqliteStorage.open(cfg.db_path, cfg.notes_dir)
    except NotewalkError as exc:
        raise click.ClickException(str(exc)) from exc
    try:
        return asyncio.run(main(cfg, storage))
    except Cancelled as exc:
        logging.getLogger("notewalk.cli").debug("cancelled: %s", exc)
        raise SystemExit(_EXIT_CANCELLED) from exc
    except NotewalkError as exc:
        raise click.ClickException(str(exc)) from exc
    finally:
        storage.close()


def _nav(cfg: NWConfig, storage: SqliteStorage) -> NavContext:
    return NavContext.from_config(cfg, storage, ask=_ask)


# ---------------------------------------------------------------------------
# Root group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(package_name="notewalk")
@click.option("-v", "--verbose", is_flag=True, help="Debug logging to stderr")
def cli(verbose: bool) -> None:
    """notewalk — navigate a personal note graph."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(name)s %(message)s",
    )


# ---------------------------------------------------------------------------
# notewalk init / reindex / status
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("name", required=False)
@click.option("--dir", "root", default=".", show_default=True, help="Project root")
def init(name: str | None, root: str) -> None:
    """Create notewalk.toml, the notes directory and the index."""
    root_path = Path(root).resolve()
    try:
        config_path = init_config(root_path, name=name)
        click.echo(f"Created {config_path}")
    except FileExistsError:
        click.echo("notewalk.toml already exists — skipping init")

    cfg = load_config(root_path)
    cfg.ensure_dirs()
    click.echo(f"Notes dir : {cfg.notes_dir}")
    click.echo(f"Index     : {cfg.db_path}")

    try:
        storage = SqliteStorage.open(cfg.db_path, cfg.notes_dir)
        try:
            n = asyncio.run(storage.reindex())
        finally:
            storage.close()
    except NotewalkError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(f"Indexed {n} notes")


@cli.command()
def reindex() -> None:
    """Rebuild the index from note files. Header links become the edge table."""

    async def main(cfg: NWConfig, storage: SqliteStorage) -> int:
        return await storage.reindex()

    n = _run(main)
    click.echo(f"Indexed {n} notes")


@cli.command()
def status() -> None:
    """Show note, tag and link counts."""
    from rich.console import Console
    from rich.table import Table

    async def main(cfg: NWConfig, storage: SqliteStorage) -> tuple[NWConfig, list[Note]]:
        return cfg, await storage.list()

    cfg, notes = _run(main)
    table = Table(title=f"notewalk — {cfg.name}", show_header=True, header_style="bold")
    table.add_column("Metric", style="dim", no_wrap=True)
    table.add_column("Value", justify="right")
    table.add_row("Config", str(cfg.root / "notewalk.toml"))
    table.add_row("Notes dir", str(cfg.notes_dir))
    table.add_row("Index", str(cfg.db_path))
    table.add_row("", "")
    table.add_row("Notes", str(len(notes)))
    table.add_row("Tags", str(len({t for n in notes for t in n.matter.tags or []})))
    table.add_row("Links", str(sum(len(n.matter.links or []) for n in notes)))
    Console().print(table)


# ---------------------------------------------------------------------------
# notewalk new / rename / remove / tag
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("name")
@click.option("-t", "--tag", "tags", multiple=True, help="Tag (repeatable)")
@click.option("-m", "--message", "content", default="", help="Initial body text")
def new(name: str, tags: tuple[str, ...], content: str) -> None:
    """Create a note named NAME."""

    async def main(cfg: NWConfig, storage: SqliteStorage) -> Note:
        try:
            await storage.get(name)
        except NoteNotFoundError:
            pass
        else:
            msg = f"a note named {name!r} already exists"
            raise NotewalkError(msg)
        try:
            note = Note.create(cfg.notes_dir, name, content=content, tags=list(tags) or None)
        except FileExistsError as exc:
            raise NotewalkError(str(exc)) from exc
        await storage.save(note)
        return note

    note = _run(main)
    click.echo(str(note.path))


@cli.command()
@click.argument("name")
@click.argument("new_name")
def rename(name: str, new_name: str) -> None:
    """Rename note NAME to NEW_NAME."""

    async def main(cfg: NWConfig, storage: SqliteStorage) -> Note:
        note = await storage.get(name)
        await rename_note(storage, note, new_name)
        return note

    note = _run(main)
    click.echo(f"{name} -> {note.name} ({note.path.name})")


@cli.command()
@click.argument("name")
@click.confirmation_option(prompt="Delete this note?")
def remove(name: str) -> None:
    """Delete note NAME and every link to it."""

    async def main(cfg: NWConfig, storage: SqliteStorage) -> None:
        await remove_note(storage, await storage.get(name))

    _run(main)
    click.echo(f"removed {name}")


@cli.group()
def tag() -> None:
    """Add or remove tags."""


@tag.command("add")
@click.argument("name")
@click.argument("tag_name")
def tag_add(name: str, tag_name: str) -> None:
    """Add TAG_NAME to note NAME (no-op if present)."""

    async def main(cfg: NWConfig, storage: SqliteStorage) -> bool:
        return (await storage.get(name)).add_tag(tag_name)

    changed = _run(main)
    click.echo(f"tagged {name} #{tag_name}" if changed else f"{name} already has #{tag_name}")


@tag.command("remove")
@click.argument("name")
@click.argument("tag_name")
def tag_remove(name: str, tag_name: str) -> None:
    """Remove TAG_NAME from note NAME (no-op if absent)."""

    async def main(cfg: NWConfig, storage: SqliteStorage) -> bool:
        return (await storage.get(name)).remove_tag(tag_name)

    changed = _run(main)
    click.echo(f"untagged {name} #{tag_name}" if changed else f"{name} has no #{tag_name}")


# ---------------------------------------------------------------------------
# Interactive: explore / surf / select / link / unlink
# ---------------------------------------------------------------------------


@cli.command()
def explore() -> None:
    """Navigate the note graph.

    \b
    enter   surf the note's links     ctrl-t  toggle preview
    ctrl-h  backlinks                 alt-r   rename
    ctrl-l  forward links             alt-l   link to ...
    ctrl-w  all notes                 alt-u   unlink from ...
    esc     quit
    """

    async def main(cfg: NWConfig, storage: SqliteStorage) -> None:
        await explore_session(_nav(cfg, storage))

    _run(main)


@cli.command()
@click.argument("name")
def surf(name: str) -> None:
    """Surf the links inside note NAME, then keep exploring.

    \b
    enter   open link    ctrl-j  jump to linked note
    ctrl-e  explore      esc     quit
    """

    async def main(cfg: NWConfig, storage: SqliteStorage) -> None:
        ctx = _nav(cfg, storage)
        items = await surf_session(ctx, await storage.get(name, ctx.render))
        await explore_session(ctx, items)

    _run(main)


@cli.command()
def select() -> None:
    """Pick a note and print its name."""

    async def main(cfg: NWConfig, storage: SqliteStorage) -> str:
        ctx = _nav(cfg, storage)
        note = await select_note(ctx, await storage.list(ctx.render), "(select) > ")
        return note.name

    click.echo(_run(main))


def _link_command(flow: Callable[..., Awaitable[tuple[Note, Note]]], arrow: str, source: str | None) -> None:
    async def main(cfg: NWConfig, storage: SqliteStorage) -> tuple[Note, Note]:
        ctx = _nav(cfg, storage)
        from_note = await storage.get(source, ctx.render) if source else None
        return await flow(ctx, source=from_note)

    a, b = _run(main)
    click.echo(f'{arrow}: "{a.name}" -> "{b.name}"')


@cli.command()
@click.option("--from", "source", default=None, help="Source note name (skip the first pick)")
def link(source: str | None) -> None:
    """Pick a source and a target note, record source -> target."""
    _link_command(run_link, "linked", source)


@cli.command()
@click.option("--from", "source", default=None, help="Source note name (skip the first pick)")
def unlink(source: str | None) -> None:
    """Pick a source and a target note, remove source -> target."""
    _link_command(run_unlink, "unlinked", source)
