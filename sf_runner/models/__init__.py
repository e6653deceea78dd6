"""Data models shared by the runner engine and services."""
