"""Exception types raised by notewalk.

Everything derives from NotewalkError so the CLI can turn any of them into a
click error in one place. Cancelled is the expected way out of an interactive
iteration and is never reported as a failure.
"""

from __future__ import annotations


class NotewalkError(Exception):
    """Base class for all notewalk failures."""


class Cancelled(NotewalkError):
    """User aborted the current selector iteration (esc / ctrl-c)."""


class NoSelectionError(NotewalkError):
    """An action that needs exactly one selected item was committed without one."""


class SelectorError(NotewalkError):
    """The interactive selector failed to produce any output."""


class StorageError(NotewalkError):
    """A storage operation failed."""


class NoteNotFoundError(StorageError):
    """No note with the requested name exists in the index."""


class SelfLinkError(NotewalkError):
    """A note was asked to link to itself."""


class NoteWriteError(NotewalkError):
    """Rewriting a note file failed part way or before starting."""


class InvalidNoteIdError(NotewalkError):
    """A file name does not follow the <timestamp>_<slug>.md convention."""


class ConfigError(NotewalkError):
    """notewalk.toml could not be parsed or holds an invalid value."""


class MatterError(NotewalkError):
    """A note's header block is not valid YAML or has the wrong shape."""
