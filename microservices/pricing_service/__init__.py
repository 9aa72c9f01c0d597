"""
Pricing Service

Shipment pricing for the shipping platform.

Features:
- Rate table for drums (tiered per-unit pricing) and weight-rated items
- Door-to-door and seal add-ons
- Settlement method resolution (cash discount, pay-on-arrival premium, 30-day terms)
- Administrator-maintained rate policies with environment defaults
"""

__version__ = "1.0.0"
