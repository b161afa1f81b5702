"""Storage package: path convention, configuration and the local file store."""
