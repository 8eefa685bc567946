"""SILK Voice Converter - Convert API service.

FastAPI service accepting audio (upload, URL or Base64) and returning
the SILK-encoded file.
"""

__all__: list[str] = []
