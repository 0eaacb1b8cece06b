"""Station records and lookups."""
