"""Threadline: read Bluesky self-reply threads as a single page."""

__version__ = "0.1.0"
