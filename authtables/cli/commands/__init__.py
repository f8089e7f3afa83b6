"""
CLI commands for AUTHTABLES.
"""
