"""
Payment Application Kernel

Shared foundations for the AIA G702/G703 payment-application engines:
- Typed exceptions with machine-readable codes
- Structured JSON logging
- Immutable domain value objects (line items, project info, cell coordinates)
"""

__version__ = "0.1.0"
