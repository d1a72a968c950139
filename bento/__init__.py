"""Bento: link-in-bio grid page builder."""

__version__ = "1.0.0"
