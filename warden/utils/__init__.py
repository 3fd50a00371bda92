"""
Warden - Utilities Package
==========================
"""
