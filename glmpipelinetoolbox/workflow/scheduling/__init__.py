"""Batch scripts for cluster schedulers, and their submission."""
