"""Catalog persistence, queries and export."""
