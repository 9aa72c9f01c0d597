"""
Booking Service

Shipment booking workflow for the shipping platform.

Features:
- Booking state machine from form capture to confirmation
- Shipment, payment, receipt and notification records per booking
- Idempotent settlement submission
- Saga log per booking with explicit, operator-invoked compensation
"""

__version__ = "1.0.0"
