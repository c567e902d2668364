"""Optional third-party integrations."""
