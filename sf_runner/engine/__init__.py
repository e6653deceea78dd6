"""Claim, execute and report loop."""
