"""Entry point for `python -m chatflux`."""

from chatflux.cli import app

if __name__ == "__main__":
    app()
