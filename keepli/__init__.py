"""Keepli - capture social posts into a spreadsheet with optional AI summaries"""

from __future__ import annotations

__version__ = "0.3.0"
