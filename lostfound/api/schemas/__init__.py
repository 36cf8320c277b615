"""Request and response schemas for the lostfound API."""
