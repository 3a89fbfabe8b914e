"""Frontrun execution engine: cache, guards, order walker, pipeline, dispatcher."""
