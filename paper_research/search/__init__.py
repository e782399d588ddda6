"""Related-work search across scholarly providers."""
