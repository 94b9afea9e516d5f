"""Core SLUICE components."""

from .wallet import KeyWallet, WalletProvider

__all__ = ["KeyWallet", "WalletProvider"]
