"""Reusable CDK Constructs."""

from .lambda_function import LambdaFunction

__all__ = [
    "LambdaFunction",
]
