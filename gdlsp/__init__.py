"""Diagnostics client for the Godot GDScript language server."""

__version__ = "0.1.0"
