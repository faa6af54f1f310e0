"""HTTP API for bizledger."""
