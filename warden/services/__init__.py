"""
Warden - Services Package
=========================
"""
