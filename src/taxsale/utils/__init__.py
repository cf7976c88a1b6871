"""
Utilities Package

Logging, throttling, retry and cancellation primitives shared by collectors.
"""
