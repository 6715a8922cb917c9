"""Operator CLI for initiative-rag.

- ``python -m initiative_rag.cli reindex --initiative ID`` - rebuild one
  initiative's chunks as the system administrator.
- ``python -m initiative_rag.cli reindex --all`` - purge and rebuild the
  whole chunk store.
- ``python -m initiative_rag.cli stats`` - chunk counts per initiative.
- ``python -m initiative_rag.cli token --email E [--admin]`` - create or
  update a user and print a session token for API calls.
"""
