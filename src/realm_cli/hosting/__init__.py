# ABOUTME: Static hosting package initialization for realm-cli
# ABOUTME: Contains asset models, local discovery, diffing, import and export

"""
realm-cli Static Hosting Package

Data flows from the local files directory and the remote listing, through
the differ, into the sync engine:

    - models.py: asset metadata, attributes, and diff records
    - local.py: local file discovery, hashing, and the hash cache
    - diff.py: local vs remote comparison
    - sync.py: worker pool applying a diff to the Admin API
    - export.py: downloading remote assets into an app directory
"""
