"""Core synchronization models and engine."""
