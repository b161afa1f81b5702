"""Catalog package: records, document stores and the catalog store."""
