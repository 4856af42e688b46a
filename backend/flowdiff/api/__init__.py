"""HTTP routes for workflow mutation and version management."""
