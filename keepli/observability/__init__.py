"""Observability - logging and in-memory telemetry"""
