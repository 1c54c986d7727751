#!/usr/bin/env python3
"""
Setup script for mockly.
This is a minimal setup.py for backward compatibility with older pip versions.
The main configuration is in pyproject.toml.
"""

from setuptools import setup

# Configuration is in pyproject.toml
setup()
