"""Data layer - schemas."""
