"""Shared helpers: angle math, drawing and logging."""
