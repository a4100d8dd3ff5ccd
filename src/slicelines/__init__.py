"""Top-level package for slicelines.

The package turns 3D-printer G-code into layer-organised, colourable line
geometry and tube meshes suitable for progressive visualisation.
"""

from __future__ import annotations

__all__ = ["__version__"]

__version__ = "0.1.0"
