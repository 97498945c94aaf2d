"""Utility modules for the reel reader."""
