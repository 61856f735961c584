"""Utility modules for redditkit."""
