"""faber command-line interface."""
