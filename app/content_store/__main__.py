"""Content store CLI interface."""

from app.content_store.cli import cli

if __name__ == "__main__":
    cli()
