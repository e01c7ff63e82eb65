"""
Shared module package.

Contains cross-cutting concerns used across bounded contexts:
- Logging configuration
"""
