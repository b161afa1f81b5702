"""AcadVault: file-backed resource catalog for an academic portal."""
