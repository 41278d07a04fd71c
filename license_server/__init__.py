"""
Device License Server - issues RSA-signed, hardware-bound licenses
"""
__version__ = "1.0.1"
