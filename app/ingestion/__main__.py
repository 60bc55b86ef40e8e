"""Ingestion record CLI interface."""

from app.ingestion.cli import cli

if __name__ == "__main__":
    cli()
