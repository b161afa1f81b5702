"""Use case layer for the catalog.

Ingest, resolve and repair operate on root-relative paths through the
storage port; nothing here depends on the web framework.
"""
