"""
Hunt Guard - proof-of-visit submission validation, fraud detection and
security monitoring for location-based challenges
"""
__version__ = "1.0.0"
