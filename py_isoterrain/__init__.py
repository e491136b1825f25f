"""
Isometric city-builder terrain: noise fields and four-shape tile meshes.
"""

__version__ = "0.1.0"
