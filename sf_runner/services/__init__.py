"""Services used by the runner engine (service client, results, uploads)."""
