"""Duty roster and fire incident report backend."""

import logging

# Azure SDK emits HTTP-level logs at INFO; keep every Cosmos DB store quiet.
logging.getLogger("azure").setLevel(logging.WARNING)
