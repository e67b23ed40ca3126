"""Prometheus instrumentation."""
