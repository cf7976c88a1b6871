"""
Monitoring Package

Health aggregation over sources and recent collection runs.
"""
