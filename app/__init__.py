"""
App module for AWS Lambda deployment.

This module contains the request adapter that runs the embedded site's
ASGI application once per Lambda invocation.
"""

__all__ = ["adapter", "assets", "config", "errors", "middleware", "models"]
