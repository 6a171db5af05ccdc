"""Servicios de aplicación con estado: store, synthesizer, snapshotter, motor."""
