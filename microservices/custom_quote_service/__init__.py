"""
Custom Quote Service

Deferred pricing for items without a standard rate.

Features:
- Quote submission with reference images uploaded to file storage
- Administrator pricing (pending -> quoted)
- Quote acceptance through the booking settlement workflow
"""

__version__ = "1.0.0"
