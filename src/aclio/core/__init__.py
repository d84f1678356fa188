"""Core ports and the application state container."""
