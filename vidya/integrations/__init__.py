"""Adapters for external collaborators: generation, web search, page fetch, concern sinks."""
