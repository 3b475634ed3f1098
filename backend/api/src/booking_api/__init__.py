"""REST API for the booking engine."""
