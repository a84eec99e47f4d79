"""Domain services backing the sample plan sign-off routes."""
