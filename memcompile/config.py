"""Compiler settings loaded from YAML with environment overrides."""
from __future__ import annotations

import os
import re
from typing import Any, Dict, List, Optional

import yaml
from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator

from memcompile.compiler.adapter import DEFAULT_RESERVED_NAMESPACE
from memcompile.runtime.errors import ConfigurationError

DEFAULT_CONFIG_FILE = "compiler_config.yaml"

_LEVEL_RE = re.compile(r"^\d+\.\d+$")
_PACKAGE_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)*$")
_TRUTHY = {"1", "true", "yes", "on"}


class CompilerSettings(BaseModel):
    """Options used to build an ``InMemoryCompiler``."""

    classpath: List[str] = Field(default_factory=list)
    source_level: Optional[str] = None
    target_level: Optional[str] = None
    debug: bool = False
    ext_dirs: Optional[str] = None
    reserved_namespace: str = DEFAULT_RESERVED_NAMESPACE
    include_notes: bool = False
    extra_options: List[str] = Field(default_factory=list)

    @field_validator("source_level", "target_level", mode="before")
    @classmethod
    def _check_level(cls, value: Any) -> Optional[str]:
        if value is None:
            return None
        # YAML reads an unquoted 3.10 as the float 3.1
        if not isinstance(value, str):
            raise ValueError(f"language level {value!r} must be quoted, e.g. '3.10'")
        value = value.strip()
        if not _LEVEL_RE.match(value):
            raise ValueError(f"expected a language level like 3.11, got '{value}'")
        return value

    @field_validator("reserved_namespace")
    @classmethod
    def _check_namespace(cls, value: str) -> str:
        if not _PACKAGE_RE.match(value):
            raise ValueError(f"'{value}' is not a dotted package name")
        return value


def load_settings(file_path: str = DEFAULT_CONFIG_FILE) -> CompilerSettings:
    """Read the ``compiler_config`` section of a YAML file.

    ``MEMCOMPILE_CLASSPATH``, ``MEMCOMPILE_DEBUG`` and
    ``MEMCOMPILE_RESERVED_NAMESPACE`` (also read from a ``.env`` file)
    override the file's values.
    """

    try:
        with open(file_path, "r", encoding="utf-8") as config_file:
            data = yaml.safe_load(config_file) or {}
    except FileNotFoundError as exc:
        raise ConfigurationError(f"Compiler configuration file '{file_path}' not found.") from exc
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Invalid YAML in '{file_path}': {exc}") from exc

    if not isinstance(data, dict) or not isinstance(data.get("compiler_config"), dict):
        raise ConfigurationError(f"'compiler_config' section missing in {file_path}.")
    return settings_from_mapping(data["compiler_config"])


def settings_from_mapping(raw: Dict[str, Any]) -> CompilerSettings:
    load_dotenv(find_dotenv(usecwd=True))
    values = dict(raw)
    classpath = os.getenv("MEMCOMPILE_CLASSPATH")
    if classpath:
        values["classpath"] = [entry for entry in classpath.split(os.pathsep) if entry]
    debug = os.getenv("MEMCOMPILE_DEBUG")
    if debug is not None:
        values["debug"] = debug.strip().lower() in _TRUTHY
    namespace = os.getenv("MEMCOMPILE_RESERVED_NAMESPACE")
    if namespace:
        values["reserved_namespace"] = namespace
    try:
        return CompilerSettings(**values)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid compiler configuration: {exc}") from exc


__all__ = ["CompilerSettings", "DEFAULT_CONFIG_FILE", "load_settings", "settings_from_mapping"]
