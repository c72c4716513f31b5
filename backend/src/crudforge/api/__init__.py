"""HTTP surface: decoding, handlers, serialization and routing."""

from crudforge.api.app import create_app

__all__ = ["create_app"]
