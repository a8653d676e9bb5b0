"""Authentication against the remote users table."""

from src.services.auth.gate import LOGIN_FAILED_MESSAGE, AuthGate

__all__ = ["AuthGate", "LOGIN_FAILED_MESSAGE"]
