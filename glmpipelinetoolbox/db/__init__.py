"""Persistent storage used as an accelerator for filesystem state."""
