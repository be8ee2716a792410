"""
Scanspine -- a concurrent license scanning engine.

Resolve inputs (paths, git repositories, archive URLs) into iterators, walk
them into content items, fan every item out to the enabled backends, and
collect the license claims per source.

Usage:
    import asyncio
    from scanspine.execution import ScanEngine
    from scanspine.framework.backends import CranBackend, SpdxBackend
    from scanspine.framework.iterators import FsIterator

    result = asyncio.run(
        ScanEngine().run([FsIterator("./project")], [CranBackend(), SpdxBackend()])
    )
"""

__version__ = "0.1.0"
