"""Persistencia opcional (SQLAlchemy async + MySQL)."""
