"""edgar-trim: fiscal-quarter reconciliation of SEC XBRL frame inventories."""
