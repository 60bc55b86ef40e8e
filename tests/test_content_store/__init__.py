"""Tests for content_store."""
