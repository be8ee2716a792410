"""
Scanspine Framework - traversal units, backends and input resolution.

This module provides:
- Iterators (filesystem, git, network archive) and the Sink protocol
- Backend protocol, Verdict, and the named backend registry
- Input resolution from user strings to root iterators

Submodules are imported directly:
    from scanspine.framework.iterators import FsIterator
    from scanspine.framework.backends import create_backends
    from scanspine.framework.resolver import resolve_inputs
"""
