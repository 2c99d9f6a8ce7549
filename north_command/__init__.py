"""North Command backend package."""
