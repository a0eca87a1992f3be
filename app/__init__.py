"""Transcript Cloud application package.

This package ingests transcript fragments, ranks their significance for a
word/sentence cloud, and keeps a bounded local buffer synchronized to a remote
store. Subpackages include:
- api: FastAPI route definitions
- core: configuration, logging and errors
- services: tokenizer, scorer, layout, local buffer, remote sink, sync and
  session management
- schemas: Pydantic models
- workers: periodic scheduler
"""

__all__ = [
    "api",
    "core",
    "services",
    "schemas",
    "workers",
]

__version__ = "1.0.0"
