"""
Transformers Package

Normalization of collected records into the canonical property schema.
"""
