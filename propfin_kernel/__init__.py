"""
PropFin Kernel

Value objects, documents and lifecycle tables for property-management
financial documents:
- Integer minor-unit Money with explicit rounding
- Frozen invoices, receipts and payment vouchers
- Declarative status workflows
- Typed exceptions and structured logging
"""

__version__ = "0.1.0"
