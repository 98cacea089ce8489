"""Logging and metrics for Vigil."""
