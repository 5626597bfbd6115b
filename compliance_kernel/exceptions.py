"""
Typed Exception Hierarchy for the Compliance Kernel.

===============================================================================
THREE KINDS OF FAILURE
===============================================================================

The kernel distinguishes three outcomes that must never be conflated:

  1. Compliance findings (a licence expired, a threshold was exceeded) are
     DATA.  They are returned inside ``ValidationResult`` as
     ``ValidationViolation`` instances and are never raised.

  2. Invalid operations (approving an override that was never requested,
     analysing a correction for a licence that does not exist) are usage
     errors.  They are raised as ``InvalidOperationError`` subclasses, are
     fatal to the caller and are not retried.

  3. External-system failures (a lookup collaborator is down or timed out)
     are transient.  They are raised as ``ExternalSystemUnavailableError``.
     The kernel does not retry; the transaction stays ``Pending``.

Every exception carries a class-level ``code`` (machine-readable, API-safe)
and structured attributes instead of a message to be parsed.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    ComplianceKernelError (base)
    |
    +-- InvalidOperationError
    |   +-- InvalidOverrideTransitionError
    |   +-- InvalidOverrideRequestError
    |   +-- TransactionAlreadyValidatedError
    |   +-- TransactionNotFoundError
    |   +-- CustomerNotFoundError
    |   +-- SubstanceNotFoundError
    |   +-- LicenceNotFoundError
    |   +-- RevalidationNotAllowedError
    |   +-- DuplicateTransactionError
    |
    +-- ReferenceDataError
    |   +-- InvalidLicenceError
    |   +-- InvalidThresholdError
    |
    +-- ExternalSystemError
    |   +-- ExternalSystemUnavailableError
    |
    +-- ConcurrencyError
        +-- ConcurrencyConflictError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                          | When Raised
----------------|-------------------------------|---------------------------------------
Operation       | INVALID_OVERRIDE_TRANSITION   | Approve/reject outside Pending
                | INVALID_OVERRIDE_REQUEST      | Missing/short justification
                | TRANSACTION_ALREADY_VALIDATED | Second validation without reset
                | TRANSACTION_NOT_FOUND         | Unknown transaction id
                | CUSTOMER_NOT_FOUND            | Transaction names unknown customer
                | SUBSTANCE_NOT_FOUND           | Line names unknown substance
                | LICENCE_NOT_FOUND             | Correction for unknown licence
                | REVALIDATION_NOT_ALLOWED      | Reset of a transaction never validated
                | DUPLICATE_TRANSACTION         | Adding an id that already exists
----------------|-------------------------------|---------------------------------------
Reference data  | INVALID_LICENCE               | Licence fails its own invariants
                | INVALID_THRESHOLD             | Threshold fails its own invariants
----------------|-------------------------------|---------------------------------------
External        | EXTERNAL_SYSTEM_UNAVAILABLE   | Lookup collaborator failed/timed out
----------------|-------------------------------|---------------------------------------
Concurrency     | CONCURRENCY_CONFLICT          | Stale version on save
"""


class ComplianceKernelError(Exception):
    """
    Base exception for all compliance kernel errors.

    All subclasses must have a ``code`` class attribute for machine-readable
    error identification.
    """

    code: str = "COMPLIANCE_KERNEL_ERROR"


# Invalid operations


class InvalidOperationError(ComplianceKernelError):
    """Programming or usage error. Fatal to the caller, never retried."""

    code: str = "INVALID_OPERATION"


class InvalidOverrideTransitionError(InvalidOperationError):
    """Override workflow transition not allowed from the current state."""

    code: str = "INVALID_OVERRIDE_TRANSITION"

    def __init__(
        self,
        transaction_id: str,
        action: str,
        override_status: str,
        requires_override: bool,
    ):
        self.transaction_id = transaction_id
        self.action = action
        self.override_status = override_status
        self.requires_override = requires_override
        super().__init__(
            f"Cannot {action} override on transaction {transaction_id}: "
            f"override status is {override_status}, "
            f"requires_override={requires_override}"
        )


class InvalidOverrideRequestError(InvalidOperationError):
    """Override decision payload rejected (justification/reason)."""

    code: str = "INVALID_OVERRIDE_REQUEST"

    def __init__(self, transaction_id: str, reason: str):
        self.transaction_id = transaction_id
        self.reason = reason
        super().__init__(
            f"Override request for transaction {transaction_id} rejected: {reason}"
        )


class TransactionAlreadyValidatedError(InvalidOperationError):
    """Validation applied to a transaction that is no longer Pending."""

    code: str = "TRANSACTION_ALREADY_VALIDATED"

    def __init__(self, transaction_id: str, validation_status: str):
        self.transaction_id = transaction_id
        self.validation_status = validation_status
        super().__init__(
            f"Transaction {transaction_id} already validated "
            f"(status: {validation_status}); use corrective re-validation"
        )


class TransactionNotFoundError(InvalidOperationError):
    """Transaction id does not exist in the store."""

    code: str = "TRANSACTION_NOT_FOUND"

    def __init__(self, transaction_id: str):
        self.transaction_id = transaction_id
        super().__init__(f"Transaction not found: {transaction_id}")


class CustomerNotFoundError(InvalidOperationError):
    """Transaction references a customer unknown to the customer lookup."""

    code: str = "CUSTOMER_NOT_FOUND"

    def __init__(self, customer_id: str):
        self.customer_id = customer_id
        super().__init__(f"Customer not found: {customer_id}")


class SubstanceNotFoundError(InvalidOperationError):
    """Transaction line references an unknown substance code."""

    code: str = "SUBSTANCE_NOT_FOUND"

    def __init__(self, substance_code: str, line_number: int | None = None):
        self.substance_code = substance_code
        self.line_number = line_number
        super().__init__(
            f"Substance not found: {substance_code}"
            + (f" (line {line_number})" if line_number is not None else "")
        )


class LicenceNotFoundError(InvalidOperationError):
    """Licence id does not exist."""

    code: str = "LICENCE_NOT_FOUND"

    def __init__(self, licence_id: str):
        self.licence_id = licence_id
        super().__init__(f"Licence not found: {licence_id}")


class RevalidationNotAllowedError(InvalidOperationError):
    """Corrective re-validation requested without grounds."""

    code: str = "REVALIDATION_NOT_ALLOWED"

    def __init__(self, transaction_id: str, reason: str):
        self.transaction_id = transaction_id
        self.reason = reason
        super().__init__(
            f"Cannot reset transaction {transaction_id} for re-validation: {reason}"
        )


class DuplicateTransactionError(InvalidOperationError):
    """A transaction with this id is already stored."""

    code: str = "DUPLICATE_TRANSACTION"

    def __init__(self, transaction_id: str):
        self.transaction_id = transaction_id
        super().__init__(f"Transaction already exists: {transaction_id}")


# Reference data


class ReferenceDataError(ComplianceKernelError):
    """Master data violates its own invariants."""

    code: str = "INVALID_REFERENCE_DATA"


class InvalidLicenceError(ReferenceDataError):
    """Licence master data is internally inconsistent."""

    code: str = "INVALID_LICENCE"

    def __init__(self, licence_number: str, problems: tuple[str, ...]):
        self.licence_number = licence_number
        self.problems = problems
        super().__init__(
            f"Licence {licence_number} is invalid: {'; '.join(problems)}"
        )


class InvalidThresholdError(ReferenceDataError):
    """Threshold configuration is internally inconsistent."""

    code: str = "INVALID_THRESHOLD"

    def __init__(self, threshold_name: str, problems: tuple[str, ...]):
        self.threshold_name = threshold_name
        self.problems = problems
        super().__init__(
            f"Threshold {threshold_name} is invalid: {'; '.join(problems)}"
        )


# External systems


class ExternalSystemError(ComplianceKernelError):
    """Base exception for collaborator failures."""

    code: str = "EXTERNAL_SYSTEM_ERROR"


class ExternalSystemUnavailableError(ExternalSystemError):
    """A lookup collaborator failed or timed out.

    The validation that needed it is abandoned; the transaction stays Pending.
    """

    code: str = "EXTERNAL_SYSTEM_UNAVAILABLE"

    def __init__(self, collaborator: str, operation: str, detail: str = ""):
        self.collaborator = collaborator
        self.operation = operation
        self.detail = detail
        super().__init__(
            f"External system unavailable: {collaborator}.{operation}"
            + (f" ({detail})" if detail else "")
        )


# Concurrency


class ConcurrencyError(ComplianceKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class ConcurrencyConflictError(ConcurrencyError):
    """Optimistic concurrency conflict on a transaction record."""

    code: str = "CONCURRENCY_CONFLICT"

    def __init__(
        self,
        entity_type: str,
        entity_id: str,
        expected_version: int | None = None,
        actual_version: int | None = None,
    ):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Concurrency conflict on {entity_type} {entity_id}: "
            "entity was modified by another writer"
        )
