"""Resumable Cognito-style sign-in for session frameworks."""

__version__ = "0.1.0"
