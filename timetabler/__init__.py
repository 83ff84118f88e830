"""Timetabling scoring-and-search engine."""

__version__ = "0.1.0"
