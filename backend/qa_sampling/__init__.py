"""QA sample plan evidence review and sign-off service."""
