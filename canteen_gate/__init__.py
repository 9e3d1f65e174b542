"""
Canteen Maintenance Gate

Maintenance-mode targeting and gating service for the college canteen
ordering platform: a persisted targeting rule, a pure rule evaluator and
a polling gate that guards protected routes.

License: MIT
"""

__version__ = "1.0.0"
