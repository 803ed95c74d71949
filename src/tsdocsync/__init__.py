"""Overview of tsdocsync.

Extract JSDoc-annotated TypeScript API documentation and keep the marked
sections of a markdown document in sync with it. The usual entry points are
:func:`~tsdocsync.render.generate_markdown` for one source file and
:func:`~tsdocsync.splice.update_document` for a whole document.
"""

from __future__ import annotations

from tsdocsync.errors import DocSyncError, ErrorCode, NoExportsError, SourceLoadError
from tsdocsync.render import RenderContext, generate_markdown
from tsdocsync.splice import UpdateResult, UpdateStatus, update_document

__all__ = [
    "DocSyncError",
    "ErrorCode",
    "NoExportsError",
    "RenderContext",
    "SourceLoadError",
    "UpdateResult",
    "UpdateStatus",
    "__version__",
    "generate_markdown",
    "update_document",
]

__version__ = "0.1.0"
