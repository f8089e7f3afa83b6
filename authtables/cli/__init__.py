"""
Command line interface for AUTHTABLES.
"""
