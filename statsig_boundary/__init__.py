"""
statsig_boundary package.

Error boundary, diagnostics markers and metadata helpers shared by the SDK
client. Importing the package stays lightweight; the public names live in
``statsig_boundary.core``.
"""

__version__ = "0.1.0"

__all__ = [
    "core",
]
