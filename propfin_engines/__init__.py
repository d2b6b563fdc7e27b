"""
Module: propfin_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    calculation engines.  This is the import surface for propfin_services.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import propfin_kernel (and sibling engine modules).
    MUST NOT import propfin_services or propfin_config.

Invariants enforced:
    - Purity: engines NEVER call ``datetime.now()`` or ``date.today()``.
      Dates are passed in as explicit parameters by the service.
    - Money-only arithmetic: amounts are integer minor units; floats are
      refused.
    - Determinism: identical inputs always produce identical outputs.

Audit relevance:
    Engine invocations are traced via ``@traced_engine`` (see
    ``propfin_engines.tracer``), emitting PROPFIN_ENGINE_TRACE log records
    with engine name, version, input fingerprint and duration.

Usage:
    from propfin_engines import invoice_computation, reconciliation
    from propfin_engines.tax import compute_tax, TaxRate
    from propfin_engines.voucher_balancer import validate, commit
"""

from propfin_kernel.logging_config import get_logger

logger = get_logger("engines")

from propfin_engines import (  # noqa: E402
    aging,
    cost_center,
    invoice_computation,
    invoice_lifecycle,
    reconciliation,
    recurrence,
    tax,
    voucher_balancer,
)
from propfin_engines.aging import (  # noqa: E402
    STANDARD_BUCKETS,
    AgingBucket,
    InvoicePortfolioSummary,
    classify_age,
    summarize_invoices,
)
from propfin_engines.cost_center import SelectionState  # noqa: E402
from propfin_engines.reconciliation import (  # noqa: E402
    SETTLED_RECEIPT_STATUSES,
    PaymentSummary,
)
from propfin_engines.tax import (  # noqa: E402
    TaxCalculationResult,
    TaxCalculator,
    TaxRate,
    compute_tax,
    split_inclusive,
)
from propfin_engines.tracer import traced_engine  # noqa: E402
from propfin_engines.voucher_balancer import (  # noqa: E402
    DEFAULT_BALANCE_TOLERANCE,
    BalanceCheck,
    ReversalResult,
)

__all__ = [
    "AgingBucket",
    "BalanceCheck",
    "DEFAULT_BALANCE_TOLERANCE",
    "InvoicePortfolioSummary",
    "PaymentSummary",
    "ReversalResult",
    "SETTLED_RECEIPT_STATUSES",
    "STANDARD_BUCKETS",
    "SelectionState",
    "TaxCalculationResult",
    "TaxCalculator",
    "TaxRate",
    "aging",
    "classify_age",
    "compute_tax",
    "cost_center",
    "invoice_computation",
    "invoice_lifecycle",
    "reconciliation",
    "recurrence",
    "split_inclusive",
    "summarize_invoices",
    "tax",
    "traced_engine",
    "voucher_balancer",
]
