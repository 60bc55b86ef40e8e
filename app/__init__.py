"""Bridgestore: settlement-gated content-addressed storage."""
