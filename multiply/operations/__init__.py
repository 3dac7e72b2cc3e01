"""Plan steps and per-protocol plan assembly."""
