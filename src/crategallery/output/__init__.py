"""Report writers for scan results."""
