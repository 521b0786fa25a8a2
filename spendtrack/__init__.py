"""Top-level package for the spendtrack expense and budget service.

Exposes the package version for runtime checks and the API metadata.
"""

from __future__ import annotations

__all__ = ["__version__"]

__version__ = "0.1.0"
