"""Reporter identities: general users and fire personnel."""
