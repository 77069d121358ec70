"""CLI module for squabble."""
