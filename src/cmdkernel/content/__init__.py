"""Bundled content resources."""
