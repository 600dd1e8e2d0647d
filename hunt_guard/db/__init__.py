"""
Database package - optional persistence for the security audit trail
"""
