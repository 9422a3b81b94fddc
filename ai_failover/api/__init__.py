"""HTTP API for the failover service."""
