"""Domain services: queries, mutation triggers and authentication."""
