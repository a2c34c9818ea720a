"""Repository facades exposing typed accessors over low-level mixins."""

from infrastructure.database.repositories.control import ControlStateRepository

__all__ = ["ControlStateRepository"]
