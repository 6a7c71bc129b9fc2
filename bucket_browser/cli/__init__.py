"""Command line interface for the bucket browser."""
