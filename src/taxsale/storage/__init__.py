"""
Storage Package

Archive of raw collected records as JSON snapshots.
"""
