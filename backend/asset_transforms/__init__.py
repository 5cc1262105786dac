"""
Asset Transforms

Transform index cache and generation pipeline for image assets.
"""

__version__ = "0.1.0"
