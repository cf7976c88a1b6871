"""
Collectors Package

Source-specific collectors that fetch raw tax sale records.
"""
