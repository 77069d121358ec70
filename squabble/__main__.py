"""
Entry point for running squabble as a module: python -m squabble
"""

from squabble.cli.commands import app

if __name__ == "__main__":
    app()
