"""
Enrichers Package

Collaborators that add derived data (coordinates) to property drafts.
"""
