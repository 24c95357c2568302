"""
SPACE platform services.

Feature evaluation engine for multi-tenant SaaS pricings: resolves the
pricing versions a user's contract subscribes to, keeps usage levels and
billing periods consistent, and evaluates feature expressions.
"""

__version__ = "1.0.0"
