"""
Editor Registry

A static table of editor profiles. Each profile knows its command, how to
turn a file position into command-line arguments, and how to ask the editor
for its version (used for availability probing).

Argument grammars differ per editor family; they are described by the closed
``ArgStyle`` enum and a table of builder functions, so callers never branch
on editor identity.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Callable, Dict, Iterator, List, Mapping, Optional, Tuple

logger = logging.getLogger(__name__)


class ArgStyle(Enum):
    """How an editor expects a file position on its command line."""
    GOTO_FLAG = "goto_flag"                  # --goto file:line:column
    LOCATION_TOKEN = "location_token"        # file:line:column
    LINE_COLUMN_FLAGS = "line_column_flags"  # --line L --column C file
    PLUS_LINE = "plus_line"                  # +line file
    PLUS_LINE_COLUMN = "plus_line_column"    # +line:column file


def _location_token(file: str, line: Optional[int], column: Optional[int]) -> str:
    if line and column:
        return f"{file}:{line}:{column}"
    if line:
        return f"{file}:{line}"
    return file


def _goto_flag(file, line, column) -> List[str]:
    return ["--goto", _location_token(file, line, column)]


def _location_only(file, line, column) -> List[str]:
    return [_location_token(file, line, column)]


def _line_column_flags(file, line, column) -> List[str]:
    args: List[str] = []
    if line:
        args += ["--line", str(line)]
        if column:
            args += ["--column", str(column)]
    return args + [file]


def _plus_line(file, line, column) -> List[str]:
    return [f"+{line}", file] if line else [file]


def _plus_line_column(file, line, column) -> List[str]:
    if line and column:
        return [f"+{line}:{column}", file]
    return _plus_line(file, line, column)


ARG_BUILDERS: Mapping[ArgStyle, Callable[[str, Optional[int], Optional[int]], List[str]]] = MappingProxyType({
    ArgStyle.GOTO_FLAG: _goto_flag,
    ArgStyle.LOCATION_TOKEN: _location_only,
    ArgStyle.LINE_COLUMN_FLAGS: _line_column_flags,
    ArgStyle.PLUS_LINE: _plus_line,
    ArgStyle.PLUS_LINE_COLUMN: _plus_line_column,
})


@dataclass(frozen=True)
class EditorProfile:
    """One supported editor."""
    key: str
    display_name: str
    command: str
    arg_style: ArgStyle
    version_probe_args: Tuple[str, ...] = ("--version",)

    def build_args(self, file: str, line: Optional[int] = None, column: Optional[int] = None) -> List[str]:
        """Arguments (without the command itself) that open ``file`` at the given position."""
        return ARG_BUILDERS[self.arg_style](file, line, column)

    def build_command(self, file: str, line: Optional[int] = None, column: Optional[int] = None) -> List[str]:
        return [self.command] + self.build_args(file, line, column)


BUILTIN_PROFILES: Tuple[EditorProfile, ...] = (
    EditorProfile("code", "Visual Studio Code", "code", ArgStyle.GOTO_FLAG),
    EditorProfile("code-insiders", "Visual Studio Code Insiders", "code-insiders", ArgStyle.GOTO_FLAG),
    EditorProfile("webstorm", "WebStorm", "webstorm", ArgStyle.LINE_COLUMN_FLAGS),
    EditorProfile("idea", "IntelliJ IDEA", "idea", ArgStyle.LINE_COLUMN_FLAGS),
    EditorProfile("sublime", "Sublime Text", "subl", ArgStyle.LOCATION_TOKEN),
    EditorProfile("atom", "Atom", "atom", ArgStyle.LOCATION_TOKEN),
    EditorProfile("vim", "Vim", "vim", ArgStyle.PLUS_LINE),
    EditorProfile("emacs", "Emacs", "emacs", ArgStyle.PLUS_LINE_COLUMN),
)


def custom_editor_profile(command: str) -> EditorProfile:
    """Profile for an arbitrary command using the generic ``file:line:column`` convention."""
    if not command or not command.strip():
        raise ValueError("Custom editor command must not be empty")
    command = command.strip()
    return EditorProfile(key=command, display_name=command, command=command, arg_style=ArgStyle.LOCATION_TOKEN)


class EditorRegistry:
    """Immutable, ordered mapping of editor key -> EditorProfile."""

    def __init__(self, profiles: Tuple[EditorProfile, ...] = BUILTIN_PROFILES):
        table: Dict[str, EditorProfile] = {}
        for profile in profiles:
            if profile.key in table:
                raise ValueError(f"Duplicate editor key: {profile.key}")
            table[profile.key] = profile
        self._profiles = MappingProxyType(table)

    @classmethod
    def for_editor(cls, editor: str) -> "EditorRegistry":
        """
        Registry for a configured ``launch_editor`` value.

        Known keys return the built-in table; anything else is treated as a
        custom command and added to it.
        """
        if editor in DEFAULT_EDITOR_REGISTRY:
            return DEFAULT_EDITOR_REGISTRY
        logger.info(f"Registering custom editor command '{editor}'")
        return cls(BUILTIN_PROFILES + (custom_editor_profile(editor),))

    def get(self, key: str) -> Optional[EditorProfile]:
        return self._profiles.get(key)

    def keys(self) -> List[str]:
        return list(self._profiles.keys())

    def __contains__(self, key: object) -> bool:
        return key in self._profiles

    def __iter__(self) -> Iterator[EditorProfile]:
        return iter(self._profiles.values())

    def __len__(self) -> int:
        return len(self._profiles)


DEFAULT_EDITOR_REGISTRY = EditorRegistry()
