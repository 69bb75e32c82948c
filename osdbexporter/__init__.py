"""Gauge metrics for Cinder, Glance, Heat and Ironic, built from database rows."""

__version__ = "0.1.0"

__all__ = ["cinder", "glance", "heat", "ironic", "metrics"]