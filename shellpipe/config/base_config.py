"""Config dataclass base with ``<PREFIX>_<NAME>`` environment lookups.

Subclasses set ``_env_prefix`` and read overrides through the typed getters;
a getter returns the supplied current value when the variable is unset.

Usage:
    from shellpipe.config.base_config import BaseConfig

    @dataclass
    class ExecutionConfig(BaseConfig):
        _env_prefix: ClassVar[str] = "SHELLPIPE"

        shell: str = "/bin/sh"

        def with_env_overrides(self):
            return replace(self, shell=self._get_env_str("SHELL", self.shell))
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from typing import Any, ClassVar, TypeVar

T = TypeVar("T", bound="BaseConfig")


@dataclass
class BaseConfig:
    """Dataclass config whose fields can be overridden from the environment.

    Fields starting with an underscore are not settings and are skipped by
    from_dict() and to_dict().
    """

    _env_prefix: ClassVar[str] = "SHELLPIPE"

    # -------------------------------------------------------------------------
    # Environment Variable Helpers
    # -------------------------------------------------------------------------

    @classmethod
    def _make_env_key(cls, suffix: str) -> str:
        """``CHUNK_SIZE`` -> ``SHELLPIPE_CHUNK_SIZE``."""
        return f"{cls._env_prefix}_{suffix}"

    @classmethod
    def _has_env(cls, suffix: str) -> bool:
        return cls._make_env_key(suffix) in os.environ

    @classmethod
    def _get_env_bool(cls, suffix: str, default: bool) -> bool:
        """True for "true", "1", "yes" or "on" (any case), False otherwise."""
        value = os.environ.get(cls._make_env_key(suffix))
        if value is None:
            return default
        return value.lower() in ("true", "1", "yes", "on")

    @classmethod
    def _get_env_int(cls, suffix: str, default: int) -> int:
        """Integer value; an unparsable value yields default."""
        value = os.environ.get(cls._make_env_key(suffix))
        if value is None:
            return default
        try:
            return int(value)
        except ValueError:
            return default

    @classmethod
    def _get_env_str(cls, suffix: str, default: str) -> str:
        value = os.environ.get(cls._make_env_key(suffix))
        if value is None:
            return default
        return value.strip()

    @classmethod
    def _get_env_list(
        cls,
        suffix: str,
        default: list[str] | None = None,
        separator: str = ",",
    ) -> list[str]:
        """Split on separator, dropping blank items."""
        value = os.environ.get(cls._make_env_key(suffix))
        if value is None:
            return list(default) if default is not None else []
        return [item.strip() for item in value.split(separator) if item.strip()]

    # -------------------------------------------------------------------------
    # Conversion
    # -------------------------------------------------------------------------

    @classmethod
    def _setting_names(cls) -> set[str]:
        return {f.name for f in fields(cls) if not f.name.startswith("_")}

    @classmethod
    def from_dict(cls: type[T], data: dict[str, Any]) -> T:
        """Build from one YAML section; unknown keys are ignored."""
        known = cls._setting_names()
        return cls(**{k: v for k, v in data.items() if k in known})

    def to_dict(self) -> dict[str, Any]:
        """Settings as a plain dict, for logging."""
        return {name: getattr(self, name) for name in self._setting_names()}
