"""Local-side building blocks: codec, identity, scanner and async helpers.

Submodules are imported explicitly (``spec_sync.core.scanner``...); only
the async helpers are re-exported here because ``spec_sync.file_handler``
depends on them.
"""

from .async_utils import gather_limited, run_sync

__all__ = ["gather_limited", "run_sync"]
