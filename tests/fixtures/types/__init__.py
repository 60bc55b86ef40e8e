"""Typed helpers for test fixtures."""
