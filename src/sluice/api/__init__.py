"""HTTP interface for SLUICE."""

from .server import ApiServer

__all__ = ["ApiServer"]
