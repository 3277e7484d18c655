"""Ordered compiler option flags."""
from __future__ import annotations

import os
from typing import Iterable, Iterator, List, Sequence, Tuple, Union

from memcompile.runtime.errors import ConfigurationError

SOURCE_FLAG = "-source"
TARGET_FLAG = "-target"
DEBUG_FLAG = "-g"
EXTDIRS_FLAG = "-extdirs"
WERROR_FLAG = "-Werror"
NOWARN_FLAG = "-nowarn"


class CompilerOptions:
    """Option list built up before a compile.

    Every call appends; configuring the same setting twice yields the flag
    twice.
    """

    def __init__(self, flags: Iterable[str] = ()) -> None:
        self._flags: List[str] = [str(flag) for flag in flags]

    def add(self, flag: str, *args: str) -> None:
        if not flag:
            raise ConfigurationError("Compiler option flags cannot be empty")
        self._flags.append(flag)
        self._flags.extend(str(arg) for arg in args)

    def add_source_level(self, level: str) -> None:
        self.add(SOURCE_FLAG, level)

    def add_target_level(self, level: str) -> None:
        self.add(TARGET_FLAG, level)

    def add_debug(self, debug: bool) -> None:
        if debug:
            self.add(DEBUG_FLAG)

    def add_extdirs(self, ext_dirs: Union[str, Sequence[str]]) -> None:
        if not isinstance(ext_dirs, str):
            ext_dirs = os.pathsep.join(str(entry) for entry in ext_dirs)
        self.add(EXTDIRS_FLAG, ext_dirs)

    def as_list(self) -> List[str]:
        return list(self._flags)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._flags))

    def __len__(self) -> int:
        return len(self._flags)

    def __repr__(self) -> str:
        return f"CompilerOptions({self._flags!r})"


def parse_version(value: str, flag: str) -> Tuple[int, int]:
    """Parse an ``X.Y`` language level."""

    parts = value.split(".")
    if len(parts) != 2 or not all(part.isdigit() for part in parts):
        raise ConfigurationError(f"Option {flag} expects a version like 3.11, got '{value}'")
    return int(parts[0]), int(parts[1])


__all__ = [
    "CompilerOptions",
    "DEBUG_FLAG",
    "EXTDIRS_FLAG",
    "NOWARN_FLAG",
    "SOURCE_FLAG",
    "TARGET_FLAG",
    "WERROR_FLAG",
    "parse_version",
]
