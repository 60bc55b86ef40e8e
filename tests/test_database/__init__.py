"""Tests for database."""
