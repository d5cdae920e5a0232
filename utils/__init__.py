"""Small framework-agnostic helpers."""
