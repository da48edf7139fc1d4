"""CDK Stacks for the site-lambda deployment."""

from .site_stack import SiteStack

__all__ = [
    "SiteStack",
]
