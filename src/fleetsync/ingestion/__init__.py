"""Ingestion layer.

Helpers that turn raw backend rows and push payloads into normalized
patches before they reach the row store.
"""

__all__: list[str] = []
