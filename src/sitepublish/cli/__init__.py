"""Command line interface for Sitepublish."""
