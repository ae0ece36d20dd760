"""CLI entry point.

Allows running the CLI as a module: python -m litdedup.cli
"""

from litdedup.cli import app

if __name__ == "__main__":
    app()
