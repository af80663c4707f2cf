"""Replay of saved suites in a real browser."""

from .engine import BrowserEngine, PlaywrightEngine
from .runner import TestRunner

__all__ = ["BrowserEngine", "PlaywrightEngine", "TestRunner"]
