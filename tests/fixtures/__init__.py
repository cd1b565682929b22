"""
Grant Portal Test Fixtures Package
Reusable factories for building model instances in tests.
"""

from .factories import *
