"""Core building blocks: errors and clients for external collaborators."""
