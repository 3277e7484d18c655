"""Serialized code object layout shared by the compiler and the loader."""
from __future__ import annotations

import importlib.util
import marshal
import time
import types

PYC_HEADER_SIZE = 16


def dump_code(code: types.CodeType, source_size: int) -> bytes:
    """Serialize ``code`` behind a 16-byte ``.pyc`` style header."""

    mtime = int(time.time()) & 0xFFFFFFFF
    header = (
        importlib.util.MAGIC_NUMBER
        + (0).to_bytes(4, "little")
        + mtime.to_bytes(4, "little")
        + (source_size & 0xFFFFFFFF).to_bytes(4, "little")
    )
    return header + marshal.dumps(code)


def load_code(content: bytes) -> types.CodeType:
    if len(content) <= PYC_HEADER_SIZE or content[:4] != importlib.util.MAGIC_NUMBER:
        raise ValueError("content was not produced by this interpreter")
    code = marshal.loads(content[PYC_HEADER_SIZE:])
    if not isinstance(code, types.CodeType):
        raise ValueError("content does not hold a code object")
    return code


__all__ = ["PYC_HEADER_SIZE", "dump_code", "load_code"]
