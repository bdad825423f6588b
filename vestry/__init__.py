"""
Vestry - admin backend for a git-synchronized static site.

Gates:
- FileSystemGate: file management confined to the site root
- GitGate: repository setup, pull/push/commit and the auto-pull scheduler
- ThemeGate: custom editor themes
- Config: schema-driven configuration
"""

from vestry import Config
from vestry.FileSystemGate import FileSystemGate
from vestry.GitGate import GitGate
from vestry.GitGate.scheduler import AutoPullScheduler
from vestry.ThemeGate import ThemeGate

__version__ = "0.1.0"

__all__ = [
    "Config",
    "FileSystemGate",
    "GitGate",
    "AutoPullScheduler",
    "ThemeGate",
]
