"""mathpractice package initialization.

Grade-5 math practice (Vietnamese curriculum): question catalog, scoring,
resumable timed tests, practice runs and locally persisted progress.
"""

from __future__ import annotations

__version__ = "0.1.0"

__all__ = ["__version__"]
