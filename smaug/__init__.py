"""Publish DragonRuby projects through a locally installed toolchain."""
from __future__ import annotations

from .cli import main

__all__ = ["main"]
