"""Workflow core: state machine, routing and shared primitives."""
