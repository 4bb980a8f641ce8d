"""Core utilities and shared infrastructure.

- config: Configuration loading and validation
- constants: API versions, endpoint defaults, header names
- exceptions: SDK exception hierarchy
"""
