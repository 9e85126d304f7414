"""
HTTP API for Warden.
"""

from .app import create_app, build_user_manager, seed_default_roles

__all__ = ["create_app", "build_user_manager", "seed_default_roles"]
