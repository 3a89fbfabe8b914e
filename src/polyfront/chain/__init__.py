"""On-chain reads (Polygon JSON-RPC)."""
