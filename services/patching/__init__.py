"""Patch engine: rewrite or restore a client bundle's entry point."""
