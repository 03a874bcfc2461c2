"""
Live event listing scrapers.

Extracts event records from client-rendered listing sites by combining
linked-data blocks, embedded application state and DOM heuristics.
"""
__version__ = "0.3.0"
