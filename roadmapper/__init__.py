"""Roadmapper — turn a project idea into a structured, schedulable plan."""

__version__ = "0.1.0"
