"""
Integrations module for external AI services.
"""

from .fix_generator import FixGenerator, FixRequest, GeneratedFix, generate_fix

__all__ = [
    "FixGenerator",
    "FixRequest",
    "GeneratedFix",
    "generate_fix",
]
