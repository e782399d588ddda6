"""Report template, validation and rendering."""
