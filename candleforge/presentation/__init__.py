"""Capa de presentación: API REST y WebSocket."""
