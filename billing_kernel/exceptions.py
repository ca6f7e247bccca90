"""
Typed Exception Hierarchy for the Billing Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the billing kernel (forms, payment-reminder jobs, accounting
sync) must react to failures by TYPE, never by parsing messages:

  - A numbering failure blocks document creation and asks the user to
    retry.  A silently skipped invoice number is worse than a failed save.
  - A schedule request with bad inputs is rejected before any computation.
  - A job that is already invoiced must not be invoiced again.

Every exception carries:
  1. A CODE class attribute (machine-readable, API-safe)
  2. Structured DATA as instance attributes (not just a message string)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from BillingKernelError:

    BillingKernelError (base)
    |
    +-- ConcurrencyError
    |   +-- WriteConflictError
    |   +-- ConcurrencyExhaustedError
    |
    +-- SequenceError
    |   +-- UnknownSeriesError
    |   +-- InvalidCounterUpdateError
    |
    +-- ScheduleError
    |   +-- InvalidScheduleRequestError
    |   +-- InstallmentNotFoundError
    |   +-- InstallmentAlreadyPaidError
    |
    +-- DocumentError
        +-- InvalidDraftError
        +-- DuplicateDocumentError
        +-- JobAlreadyInvoicedError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Concurrency     | WRITE_CONFLICT              | Counter changed under an open transaction
                | CONCURRENCY_EXHAUSTED       | Allocation retries used up
----------------|-----------------------------|-----------------------------------------
Sequence        | UNKNOWN_SERIES              | Series name is not configured
                | INVALID_COUNTER_UPDATE      | Counter edit would move numbering back
----------------|-----------------------------|-----------------------------------------
Schedule        | INVALID_SCHEDULE_REQUEST    | Plan total/count/start date invalid
                | INSTALLMENT_NOT_FOUND       | Installment index out of range
                | INSTALLMENT_ALREADY_PAID    | Payment recorded twice
----------------|-----------------------------|-----------------------------------------
Document        | INVALID_DRAFT               | Draft is not structured data
                | DUPLICATE_DOCUMENT          | Unique claim already held
                | JOB_ALREADY_INVOICED        | Job already covered by an invoice

===============================================================================
HANDLING PATTERNS
===============================================================================

1. WRITE CONFLICTS ARE RETRIED BY THE ALLOCATOR, NOT BY CALLERS:

    try:
        document = assembler.create_priced_document(draft, "invoice")
    except ConcurrencyExhaustedError as e:
        # Nothing was written and no number was spent.
        notify_user(f"Could not number {e.series}, please try again")

2. DUPLICATES ARE PERMANENT:

    except JobAlreadyInvoicedError as e:
        open_existing_invoice(e.job_id)

===============================================================================
"""


class BillingKernelError(Exception):
    """
    Base exception for all billing kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "BILLING_KERNEL_ERROR"


# Concurrency-related exceptions


class ConcurrencyError(BillingKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class WriteConflictError(ConcurrencyError):
    """
    A record read inside a transaction was changed by another writer
    before the transaction committed.

    The transaction has been rolled back; nothing it wrote is visible.
    """

    code: str = "WRITE_CONFLICT"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"Write conflict on {entity_type} {entity_id}: "
            "record was modified by another transaction"
        )


class ConcurrencyExhaustedError(ConcurrencyError):
    """
    Allocation retried up to its bound and still conflicted.

    The document was NOT created and no sequence number was spent.
    """

    code: str = "CONCURRENCY_EXHAUSTED"

    def __init__(self, series: str, attempts: int):
        self.series = series
        self.attempts = attempts
        super().__init__(
            f"Could not allocate a number in series '{series}' "
            f"after {attempts} attempts"
        )


# Sequence-related exceptions


class SequenceError(BillingKernelError):
    """Base exception for numbering errors."""

    code: str = "SEQUENCE_ERROR"


class UnknownSeriesError(SequenceError):
    """Series name has no configuration."""

    code: str = "UNKNOWN_SERIES"

    def __init__(self, series: str):
        self.series = series
        super().__init__(f"Unknown document series: '{series}'")


class InvalidCounterUpdateError(SequenceError):
    """A counter edit was rejected (e.g. next value moved backwards)."""

    code: str = "INVALID_COUNTER_UPDATE"

    def __init__(self, series: str, reason: str):
        self.series = series
        self.reason = reason
        super().__init__(f"Invalid update for series '{series}': {reason}")


# Payment schedule exceptions


class ScheduleError(BillingKernelError):
    """Base exception for payment plan errors."""

    code: str = "SCHEDULE_ERROR"


class InvalidScheduleRequestError(ScheduleError):
    """Schedule preconditions failed; no partial schedule is produced."""

    code: str = "INVALID_SCHEDULE_REQUEST"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid payment schedule request ({field}): {reason}")


class InstallmentNotFoundError(ScheduleError):
    """Installment index is outside the plan."""

    code: str = "INSTALLMENT_NOT_FOUND"

    def __init__(self, index: int, installment_count: int):
        self.index = index
        self.installment_count = installment_count
        super().__init__(
            f"Installment {index} not found in plan of {installment_count}"
        )


class InstallmentAlreadyPaidError(ScheduleError):
    """Installment was already marked paid."""

    code: str = "INSTALLMENT_ALREADY_PAID"

    def __init__(self, index: int):
        self.index = index
        super().__init__(f"Installment {index} is already paid")


# Document-related exceptions


class DocumentError(BillingKernelError):
    """Base exception for document assembly errors."""

    code: str = "DOCUMENT_ERROR"


class InvalidDraftError(DocumentError):
    """Draft submitted to the kernel is not usable structured data."""

    code: str = "INVALID_DRAFT"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid draft: {reason}")


class DuplicateDocumentError(DocumentError):
    """A unique claim is already held by another document."""

    code: str = "DUPLICATE_DOCUMENT"

    def __init__(self, collection: str, claim_key: str):
        self.collection = collection
        self.claim_key = claim_key
        super().__init__(
            f"Cannot create {collection} document: claim '{claim_key}' already taken"
        )


class JobAlreadyInvoicedError(DocumentError):
    """A job is already covered by an existing invoice."""

    code: str = "JOB_ALREADY_INVOICED"

    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(f"Job {job_id} has already been invoiced")
