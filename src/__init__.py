"""
Tax Sale Collector - Core Package

This package contains the collection and transformation pipeline for
property tax sale records, including collectors, normalization and persistence.
"""

__version__ = "0.1.0"
