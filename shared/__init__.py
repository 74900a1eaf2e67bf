"""Cross-cutting logging and metrics support for the catalog service."""
