"""
Database package.

- base: declarative base and mixins
- models: ORM models
- connection: engine and session management
"""

__all__ = []
