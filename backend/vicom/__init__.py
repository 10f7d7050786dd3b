"""Size-targeted video compression service."""
