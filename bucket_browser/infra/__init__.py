"""Infrastructure: logging and object storage."""
