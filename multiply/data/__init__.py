"""Constants, collaborator interfaces and data providers (static, on-chain, swap quotes)."""
