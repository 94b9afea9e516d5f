"""Blockchain integration for SLUICE."""

from .client import ChainClient

__all__ = ["ChainClient"]
