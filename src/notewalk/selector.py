"""The interactive selector boundary and its fzf implementation.

The navigation modes hand a selector a stream of items, a prompt, a
multi-select flag and the control codes they bind; they get back the key
that ended the selection and the chosen items. Fuzzy matching and drawing
are entirely fzf's business.

Control codes use fzf key names: "enter", "esc", "ctrl-c", "ctrl-h",
"alt-r", ...
"""

from __future__ import annotations

import contextlib
import logging
import shlex
import subprocess
import tempfile
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol

from notewalk.errors import SelectorError

if TYPE_CHECKING:
    from collections.abc import Collection, Iterable, Sequence
    from enum import Enum

logger = logging.getLogger("notewalk.selector")

ACCEPT_KEY = "enter"
ABORT_KEYS = ("esc", "ctrl-c")
_FZF_ABORTED = 130
_FZF_NO_MATCH = 1


class SelectorItem(Protocol):
    def display(self) -> str: ...
    def preview(self) -> str: ...


@dataclass
class SelectorOutput:
    final_key: str
    selected: list[Any] = field(default_factory=list)


class Selector(Protocol):
    def run(
        self,
        source: Iterable[SelectorItem],
        *,
        prompt: str,
        multi: bool,
        keys: Sequence[str],
        preview_window: str,
    ) -> SelectorOutput | None: ...


def validate_bindings(bindings: dict[str, Enum], kinds: type[Enum], required: Collection[Enum] | None = None) -> None:
    """Every required action kind needs a control code; every code must name a kind of this mode.

    `required` defaults to every member of `kinds`.
    """
    stray = sorted(key for key, kind in bindings.items() if not isinstance(kind, kinds))
    if stray:
        msg = f"{kinds.__name__}: keys bound to foreign actions: {', '.join(stray)}"
        raise ValueError(msg)
    wanted = kinds if required is None else [kind for kind in kinds if kind in required]
    unbound = [kind.name for kind in wanted if kind not in bindings.values()]
    if unbound:
        msg = f"{kinds.__name__}: actions without a key: {', '.join(unbound)}"
        raise ValueError(msg)
    if ACCEPT_KEY not in bindings:
        msg = f"{kinds.__name__}: '{ACCEPT_KEY}' must be bound"
        raise ValueError(msg)


def _clean(text: str) -> str:
    return text.replace("\t", " ").replace("\n", " ").replace("\r", " ")


class FzfSelector:
    """Runs fzf as a subprocess, feeding it items as they arrive.

    Each line is "<index>\\t<display>"; only the display part is shown and
    matched. Previews are written to one file per item in a temp dir and
    shown with `cat`.
    """

    def __init__(self, command: str = "fzf") -> None:
        self.command = command

    def _args(self, tmp: Path, *, prompt: str, multi: bool, keys: Sequence[str], preview_window: str) -> list[str]:
        expect = [k for k in keys if k != ACCEPT_KEY and k not in ABORT_KEYS]
        args = [
            *shlex.split(self.command),
            "--ansi",
            "--height=100%",
            "--delimiter=\t",
            "--with-nth=2..",
            f"--prompt={prompt}",
            f"--preview=cat {shlex.quote(str(tmp))}/{{1}}",
            f"--preview-window={preview_window}",
            "--multi" if multi else "--no-multi",
        ]
        if expect:
            args.append(f"--expect={','.join(expect)}")
        return args

    def _feed(
        self,
        proc: subprocess.Popen[str],
        source: Iterable[SelectorItem],
        items: dict[str, SelectorItem],
        tmp: Path,
    ) -> None:
        assert proc.stdin is not None
        try:
            for index, item in enumerate(source):
                key = str(index)
                items[key] = item
                (tmp / key).write_text(item.preview(), encoding="utf-8")
                proc.stdin.write(f"{key}\t{_clean(item.display())}\n")
                proc.stdin.flush()
        except (BrokenPipeError, OSError, ValueError):
            # fzf exited before every item arrived
            logger.debug("selector closed its input early")
        finally:
            with contextlib.suppress(BrokenPipeError, OSError, ValueError):
                proc.stdin.close()

    def run(
        self,
        source: Iterable[SelectorItem],
        *,
        prompt: str,
        multi: bool,
        keys: Sequence[str],
        preview_window: str = "right:55%",
    ) -> SelectorOutput | None:
        items: dict[str, SelectorItem] = {}
        with tempfile.TemporaryDirectory(prefix="notewalk-", ignore_cleanup_errors=True) as tmp_name:
            tmp = Path(tmp_name)
            args = self._args(tmp, prompt=prompt, multi=multi, keys=keys, preview_window=preview_window)
            try:
                proc = subprocess.Popen(args, stdin=subprocess.PIPE, stdout=subprocess.PIPE, text=True)
            except OSError as exc:
                msg = f"cannot start selector {args[0]!r}: {exc}"
                raise SelectorError(msg) from exc
            feeder = threading.Thread(target=self._feed, args=(proc, source, items, tmp), daemon=True)
            feeder.start()
            assert proc.stdout is not None
            out = proc.stdout.read()
            code = proc.wait()

        if code == _FZF_ABORTED:
            return SelectorOutput(final_key="esc")
        if code not in (0, _FZF_NO_MATCH):
            logger.warning("%s exited with status %d", args[0], code)
            return None
        lines = out.split("\n")
        expect_used = any(a.startswith("--expect=") for a in args)
        final_key = (lines.pop(0) if expect_used and lines else "") or ACCEPT_KEY
        selected = [items[line.split("\t", 1)[0]] for line in lines if line and line.split("\t", 1)[0] in items]
        return SelectorOutput(final_key=final_key, selected=selected)
