"""Developer command-line interface."""
