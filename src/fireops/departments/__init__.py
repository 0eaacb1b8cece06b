"""Department lookups."""
