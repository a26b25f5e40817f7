"""Command-line interface for aef."""
