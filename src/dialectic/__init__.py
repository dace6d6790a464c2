"""Dialectic: job planning and dependency resolution for staged AI generation."""

__version__ = "0.1.0"
