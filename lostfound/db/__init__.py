"""Persistence for work requests and approver identities."""
