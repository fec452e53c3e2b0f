"""Metadata core of a private Composer repository mirror."""

__version__ = "0.3.0"
