"""Expense tracking REST API with password and Google sign-in."""

__all__ = [
    "auth",
    "client",
    "config",
    "crud",
    "database",
    "models",
    "schemas",
    "server",
]

__version__ = "1.0.0"
