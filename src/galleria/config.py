# -*- coding: utf-8 -*-
import os
from dataclasses import dataclass, replace


DEFAULT_BLOCK_SIZE = 1000


@dataclass(frozen=True)
class Settings:
    """
    Process wide defaults.

    Args:
        block_size (int): how many records a gallery returns per block when
            neither the caller nor the descriptor asks otherwise.
        path (str): root used to resolve relative record names.
    """
    block_size: int = DEFAULT_BLOCK_SIZE
    path: str = ""

    @classmethod
    def from_environ(cls, environ=None):
        environ = os.environ if environ is None else environ
        return cls(block_size=int(environ.get("GALLERIA_BLOCK_SIZE",
                                              DEFAULT_BLOCK_SIZE)),
                   path=environ.get("GALLERIA_PATH", ""))


_settings = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings.from_environ()
    return _settings


def set_settings(settings: Settings = None, **changes) -> Settings:
    """Replace the process settings, or update some of their fields."""
    global _settings
    if settings is None:
        settings = replace(get_settings(), **changes)
    _settings = settings
    return _settings
