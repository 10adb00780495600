"""Entry point for running kindred as a module: python -m kindred."""

from kindred.cli.commands import app

if __name__ == "__main__":
    app()
