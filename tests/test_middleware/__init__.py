"""Tests for middleware."""
