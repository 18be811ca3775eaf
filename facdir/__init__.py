"""Faculty directory: data access over a hosted relational store."""

__version__ = "0.1.0"
