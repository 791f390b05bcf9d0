"""Entry point for running browserbridge as a module: python -m browserbridge"""

from browserbridge.cli.commands import app

if __name__ == "__main__":
    app()
