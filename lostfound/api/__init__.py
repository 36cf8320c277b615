"""HTTP layer over the workflow service."""
