"""Fire incident reports: intake, resolution, lifecycle and statistics."""
