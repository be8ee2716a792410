"""Scanspine Core -- cross-cutting primitives.

Architecture::

    errors.py     Structured error hierarchy (ScanspineError and friends)
    logging.py    structlog configuration and context binding
    hashing.py    Content fingerprints for the verdict cache
    cache.py      VerdictCache protocol, in-memory and directory caches
    settings.py   ScanSettings (pydantic-settings)
"""
