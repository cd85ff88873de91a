# linework/__main__.py
"""Entry point for `python -m linework`."""

from linework.cli import app

if __name__ == "__main__":
    app()
