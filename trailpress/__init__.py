"""
Trailpress: build a static site of outings from GPX tracks and the photos
taken along the way.
"""

__version__ = "0.3.0"
