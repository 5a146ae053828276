"""Collaborator interfaces and their production implementations.

- ``base``: abstract interfaces the engine depends on
- ``github_config``: ``.ci.yaml`` text from GitHub raw content
- ``github_checks``: check runs through PyGithub
- ``buildbucket``: Buildbucket pRPC client
- ``json_datastore``: file-backed commit and task storage
- ``factory``: builds a ``Scheduler`` from settings
"""
