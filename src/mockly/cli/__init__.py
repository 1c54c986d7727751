"""
Command line interface for Mockly.
"""
