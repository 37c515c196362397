# ABOUTME: realm-cli package initialization
# ABOUTME: Exposes version information for the Realm administration client

"""
realm-cli - Command-line administration client for MongoDB Realm apps.

=============================================================================
WHAT IS THIS PACKAGE?
=============================================================================

realm-cli talks to the Realm Admin API on behalf of a logged-in user. It:

1. AUTHENTICATES with an API key (or username/password) and keeps the
   resulting access/refresh token pair in a local profile file
2. REFRESHES the access token transparently when the API answers 401
3. SYNCHRONIZES static hosting assets: diffs a local files directory against
   the remote asset listing and uploads/deletes/modifies assets with a
   bounded pool of concurrent workers
4. MANAGES app secrets (list, add, update, remove)

=============================================================================
PACKAGE LAYOUT
=============================================================================

realm_cli/
├── __init__.py          <- This file: version information
├── cli.py               <- argparse entry point and command handlers
├── config.py            <- Settings (pydantic-settings) and profile storage
├── auth.py              <- Auth providers, token responses, JWT expiry checks
├── api.py               <- Realm Admin API wrapper (hosting, secrets, apps)
├── hosting/
│   ├── models.py        <- Asset metadata types and attribute comparison
│   ├── diff.py          <- Local vs remote asset diffing
│   ├── local.py         <- Local file walking, hashing, asset cache
│   ├── sync.py          <- Concurrent hosting import engine
│   └── export.py        <- Hosting export (metadata file + asset download)
└── utils/
    ├── client.py        <- HTTP executor and token-refreshing AuthClient
    ├── logging.py       <- Structured logging with correlation IDs
    └── ui.py            <- Info/error output sink
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
