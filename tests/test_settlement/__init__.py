"""Tests for settlement."""
