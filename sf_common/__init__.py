"""Common utilities shared by specfleet runner and UI packages."""
