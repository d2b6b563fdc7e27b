"""
Services -- the synchronous command/query surface used by the application
layer (forms, list screens, report generators).
"""

from propfin_services.document_service import FinancialDocumentService

__all__ = ["FinancialDocumentService"]
