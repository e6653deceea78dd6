"""User-facing surfaces for specfleet (CLI and presenters)."""
