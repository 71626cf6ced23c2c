"""
UI module - Rich console interface and report export.

Provides:
- Run summary tables with failures called out
- Persistence plan display (gaps flagged as not surviving reboot)
- Journal history and registry listings
- Markdown/JSON report files
"""

from .console import ConsoleUI
from .display import ResultDisplay

__all__ = [
    "ConsoleUI",
    "ResultDisplay",
]
