"""SILK Voice Converter - Core application modules.

Provides:
- Staging area path helpers and atomic file I/O
- Input resolution (upload, remote URL, Base64)
- Conversion coordination (cache, codec vs timeout race, cleanup)
"""

__version__ = "0.1.0"
