"""Source extraction: scholarly records, HTML, PDF."""
