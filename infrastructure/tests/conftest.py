"""Pytest configuration for CDK stack tests."""

import os
import sys

# Stacks import their constructs as top-level modules (cdk runs app.py from infrastructure/)
INFRASTRUCTURE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if INFRASTRUCTURE_DIR not in sys.path:
    sys.path.append(INFRASTRUCTURE_DIR)
