"""Exchange boundary: protocols, Polymarket CLOB adapter, payload normalization."""
