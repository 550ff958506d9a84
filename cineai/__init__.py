"""Installable entry point for the CineAI backend."""

from __future__ import annotations

from app import __version__

__all__ = ["__version__"]
