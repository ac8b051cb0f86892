"""Instance reconciliation: translation, requests, polling, diffing."""
