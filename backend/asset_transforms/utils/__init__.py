"""
Utility functions for Asset Transforms

This module provides helpers shared by the transform services: folder
naming and fingerprints, rendition paths, temporary files, timestamps, and
wait strategies.
"""
