"""
CalmMind application package.

This package contains the entry store, prompt assembly, mood tracking and the
Gemini client behind the CalmMind wellness companion, plus its Qt front end.
"""

from .config import AppConfig
