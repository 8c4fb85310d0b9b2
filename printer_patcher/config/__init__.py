"""Bundled action catalog, repository list and step scripts.

Resources in this package back the ``local`` action source:

- ``actions.yaml``: the local action catalog
- ``repo.yaml``: repositories offered as remote sources
- ``scripts/*.sh``: step scripts referenced from ``actions.yaml``
"""
