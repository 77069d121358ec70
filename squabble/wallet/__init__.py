"""Wallet record persistence."""

from squabble.wallet.store import FileWalletStore, InMemoryWalletStore, WalletStore

__all__ = ["WalletStore", "FileWalletStore", "InMemoryWalletStore"]
