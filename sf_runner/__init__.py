"""Runner package for specfleet: claims specs, runs them and ships results."""
