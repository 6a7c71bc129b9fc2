"""Application features built on the storage infrastructure."""
