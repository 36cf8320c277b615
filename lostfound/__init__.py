"""Lost and found approval workflow engine."""

__version__ = "0.1.0"
