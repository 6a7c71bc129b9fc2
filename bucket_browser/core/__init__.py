"""Core building blocks: exceptions and settings."""
