"""Diff-based workflow mutation engine with bounded version history."""
