"""
Backend package: Flask HTTP layer for the OTP verification engine.
"""

from .app import create_app

__all__ = ["create_app"]
