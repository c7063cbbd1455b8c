"""Liveness and readiness probes served at ``/health`` and ``/ready``."""
