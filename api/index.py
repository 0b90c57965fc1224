"""
Vercel Serverless Entry Point

This module wraps the FastAPI application for Vercel serverless deployment.
Vercel expects either 'app' or 'handler' to be exported from this module.
"""

import os
import sys

# Ensure the project root is in the path for imports
project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if project_root not in sys.path:
    sys.path.insert(0, project_root)

from reachstream.main import app  # noqa: E402

__all__ = ["app"]
