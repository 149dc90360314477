"""
Plant Doctor: plant disease diagnosis backend.
"""

__version__ = "1.0.0"
