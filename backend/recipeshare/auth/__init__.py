# recipeshare/auth/__init__.py
"""
Authentication modules for recipeshare.

This package contains:
- identity.py: Canonical authenticated identity model (auth-method aware)
"""
from recipeshare.auth.identity import AuthMethod, Identity

__all__ = ["AuthMethod", "Identity"]
