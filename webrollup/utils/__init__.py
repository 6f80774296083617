"""
Utilities for webrollup
"""
