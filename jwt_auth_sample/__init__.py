"""JWT cookie authentication sample - Backend.

Core concepts:
- One entity: an *account* (email + bcrypt password hash).
- Sign-in issues a signed, 24h JWT in an httpOnly cookie.
- Protected routes accept a request only with a valid token.
"""

__all__ = ["__version__"]

__version__ = "0.1.0"
