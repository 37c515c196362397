# ABOUTME: Utilities package initialization for realm-cli
# ABOUTME: Contains the HTTP transport, logging setup, and user output sink

"""
realm-cli Utilities Package

Shared utilities:
    - client.py: request executor and token-refreshing AuthClient
    - logging.py: structured logging with correlation IDs
    - ui.py: user-facing output sink
"""
