"""Core library: record store, dispatch channel, enrichment worker and queries."""
