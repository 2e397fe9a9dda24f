"""
Specialist availability and slot generation engine.
"""

__version__ = "0.1.0"
