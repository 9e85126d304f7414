"""
Warden: role-based access control for a users/roles/posts API.
"""

__version__ = "0.1.0"
