"""
Database package initialization.

The package follows a modular structure:
- base: Declarative base and shared mixins
- connection: Async engine, session factory and the unit of work
- models: SQLAlchemy ORM models for the checkout tables
"""

# Import submodules explicitly when needed to avoid circular dependencies

__all__ = []
