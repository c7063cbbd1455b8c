"""Shared fixtures for BDD feature tests.

Scenarios reuse the ``session_factory`` fixture from ``tests/conftest.py``;
its ``NullPool`` engine lets steps drive the database through ``run_async``.
"""
