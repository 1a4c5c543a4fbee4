"""Logging and tracing plumbing."""
