"""Tallyman HTTP API layer.

This package provides the Falcon Asynchronous Server Gateway Interface
(ASGI) application that receives GitHub webhooks and serves statistics.

Public API
----------
create_app
    Application factory; health endpoints only without dependencies, the
    webhook and statistics endpoints when database dependencies are given.
"""

from tallyman.api.app import create_app

__all__ = ["create_app"]
