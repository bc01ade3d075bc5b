"""
Typed Exception Hierarchy for the Consolidation Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Ownership and consolidation errors have to be handled precisely. A caller
that creates an ownership relationship needs to know whether the write was
rejected because the child is already fully owned, because the parent does
not exist, or because the percentage itself is malformed. Parsing message
strings for that is fragile.

Every exception here therefore:
  1. Has its own class (catch by type, not message)
  2. Has a CODE class attribute (machine-readable, API-safe)
  3. Carries structured DATA as attributes (child id, requested, available)

Example:
    try:
        store.create_relationship(parent_id, child_id, Decimal("30"))
    except OwnershipOverallocatedError as e:
        api_response(code=e.code, available=str(e.available))

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    ConsolidationEngineError (base)
    |
    +-- NotFoundError
    |   +-- EntityNotFoundError
    |   +-- AccountNotFoundError
    |   +-- RelationshipNotFoundError
    |   +-- AlertNotFoundError
    |   +-- LedgerEntryNotFoundError
    |
    +-- OwnershipError
    |   +-- OwnershipOverallocatedError
    |   +-- SelfOwnershipError
    |   +-- InvalidOwnershipPercentageError
    |
    +-- AccountError
    |   +-- SystemTemplateImmutableError
    |
    +-- WorkflowError
    |   +-- InvalidStateTransitionError
    |   +-- DuplicateAlertExistsError
    |
    +-- IntercompanyError
    |   +-- IntercompanyNotFlaggedError
    |   +-- InvalidCounterpartyError
    |
    +-- DataAccessError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category      | Code                        | When Raised
--------------|-----------------------------|-------------------------------------------
Lookup        | ENTITY_NOT_FOUND            | Entity id unknown to the collaborator
              | ACCOUNT_NOT_FOUND           | Account id unknown
              | RELATIONSHIP_NOT_FOUND      | Ownership relationship id unknown
              | ALERT_NOT_FOUND             | Duplicate alert id unknown
              | LEDGER_ENTRY_NOT_FOUND      | Journal entry id unknown
--------------|-----------------------------|-------------------------------------------
Ownership     | OWNERSHIP_OVERALLOCATED     | Active ownership of a child would exceed 100
              | SELF_OWNERSHIP              | parent_entity_id == child_entity_id
              | INVALID_OWNERSHIP_PERCENTAGE| Percentage outside (0, 100]
--------------|-----------------------------|-------------------------------------------
Account       | SYSTEM_TEMPLATE_IMMUTABLE   | Hard delete of a template-derived account
--------------|-----------------------------|-------------------------------------------
Workflow      | INVALID_STATE_TRANSITION    | Alert transition not allowed from state
              | DUPLICATE_ALERT_EXISTS      | Alert already recorded for account pair
--------------|-----------------------------|-------------------------------------------
Intercompany  | INTERCOMPANY_NOT_FLAGGED    | Eliminating an entry that is not flagged
              | INVALID_COUNTERPARTY        | Counterparty equals the entry's own entity
--------------|-----------------------------|-------------------------------------------
Collaborator  | DATA_ACCESS_ERROR           | Underlying store failed (wraps driver error)

===============================================================================
WARNINGS ARE NOT EXCEPTIONS
===============================================================================

Cycle detection during traversal and entities skipped during consolidation
are reported as ConsolidationWarning values attached to results. They
degrade a result; they never abort it. Only validation failures on writes
raise.
"""

from decimal import Decimal


class ConsolidationEngineError(Exception):
    """
    Base exception for all consolidation engine errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "CONSOLIDATION_ENGINE_ERROR"


# Lookup exceptions


class NotFoundError(ConsolidationEngineError):
    """Base exception for unknown identifiers."""

    code: str = "NOT_FOUND"


class EntityNotFoundError(NotFoundError):
    """Entity with given ID was not found."""

    code: str = "ENTITY_NOT_FOUND"

    def __init__(self, entity_id: str):
        self.entity_id = entity_id
        super().__init__(f"Entity not found: {entity_id}")


class AccountNotFoundError(NotFoundError):
    """Account with given ID was not found."""

    code: str = "ACCOUNT_NOT_FOUND"

    def __init__(self, account_id: str):
        self.account_id = account_id
        super().__init__(f"Account not found: {account_id}")


class RelationshipNotFoundError(NotFoundError):
    """Ownership relationship with given ID was not found."""

    code: str = "RELATIONSHIP_NOT_FOUND"

    def __init__(self, relationship_id: str):
        self.relationship_id = relationship_id
        super().__init__(f"Ownership relationship not found: {relationship_id}")


class AlertNotFoundError(NotFoundError):
    """Duplicate alert with given ID was not found."""

    code: str = "ALERT_NOT_FOUND"

    def __init__(self, alert_id: str):
        self.alert_id = alert_id
        super().__init__(f"Duplicate alert not found: {alert_id}")


class LedgerEntryNotFoundError(NotFoundError):
    """Journal entry with given ID was not found."""

    code: str = "LEDGER_ENTRY_NOT_FOUND"

    def __init__(self, entry_id: str):
        self.entry_id = entry_id
        super().__init__(f"Ledger entry not found: {entry_id}")


# Ownership exceptions


class OwnershipError(ConsolidationEngineError):
    """Base exception for ownership graph validation errors."""

    code: str = "OWNERSHIP_ERROR"


class OwnershipOverallocatedError(OwnershipError):
    """
    Writing the relationship would push a child's active ownership above 100%.

    `available` is computed excluding the relationship being updated, so it
    is the largest percentage the caller could have requested.
    """

    code: str = "OWNERSHIP_OVERALLOCATED"

    def __init__(self, child_entity_id: str, requested: Decimal, available: Decimal):
        self.child_entity_id = child_entity_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Cannot allocate {requested}% of {child_entity_id}: "
            f"only {available}% available"
        )


class SelfOwnershipError(OwnershipError):
    """An entity cannot own itself."""

    code: str = "SELF_OWNERSHIP"

    def __init__(self, entity_id: str):
        self.entity_id = entity_id
        super().__init__(f"Entity cannot own itself: {entity_id}")


class InvalidOwnershipPercentageError(OwnershipError):
    """Ownership percentage must be in (0, 100]."""

    code: str = "INVALID_OWNERSHIP_PERCENTAGE"

    def __init__(self, percentage: Decimal):
        self.percentage = percentage
        super().__init__(
            f"Ownership percentage must be greater than 0 and at most 100, "
            f"got {percentage}"
        )


# Account exceptions


class AccountError(ConsolidationEngineError):
    """Base exception for account lifecycle errors."""

    code: str = "ACCOUNT_ERROR"


class SystemTemplateImmutableError(AccountError):
    """Template-derived or system accounts cannot be hard-deleted."""

    code: str = "SYSTEM_TEMPLATE_IMMUTABLE"

    def __init__(self, account_id: str, template_account_id: str | None = None):
        self.account_id = account_id
        self.template_account_id = template_account_id
        super().__init__(
            f"Account {account_id} derives from a system template and cannot "
            f"be deleted; deactivate it instead"
        )


# Workflow exceptions


class WorkflowError(ConsolidationEngineError):
    """Base exception for review workflow errors."""

    code: str = "WORKFLOW_ERROR"


class InvalidStateTransitionError(WorkflowError):
    """The requested action is not allowed from the current state."""

    code: str = "INVALID_STATE_TRANSITION"

    def __init__(
        self,
        workflow: str,
        from_state: str,
        action: str,
        allowed_actions: tuple[str, ...] = (),
    ):
        self.workflow = workflow
        self.from_state = from_state
        self.action = action
        self.allowed_actions = allowed_actions
        allowed = ", ".join(allowed_actions) if allowed_actions else "none"
        super().__init__(
            f"{workflow}: cannot '{action}' from state '{from_state}' "
            f"(allowed: {allowed})"
        )


class DuplicateAlertExistsError(WorkflowError):
    """An alert already exists for this unordered account pair."""

    code: str = "DUPLICATE_ALERT_EXISTS"

    def __init__(self, account_id: str, duplicate_account_id: str, existing_alert_id: str):
        self.account_id = account_id
        self.duplicate_account_id = duplicate_account_id
        self.existing_alert_id = existing_alert_id
        super().__init__(
            f"Alert already exists for accounts {account_id} / "
            f"{duplicate_account_id}: {existing_alert_id}"
        )


# Intercompany exceptions


class IntercompanyError(ConsolidationEngineError):
    """Base exception for intercompany classification errors."""

    code: str = "INTERCOMPANY_ERROR"


class IntercompanyNotFlaggedError(IntercompanyError):
    """Only entries flagged as intercompany can be eliminated."""

    code: str = "INTERCOMPANY_NOT_FLAGGED"

    def __init__(self, entry_id: str):
        self.entry_id = entry_id
        super().__init__(f"Ledger entry is not flagged as intercompany: {entry_id}")


class InvalidCounterpartyError(IntercompanyError):
    """Counterparty must be a different entity from the entry's own."""

    code: str = "INVALID_COUNTERPARTY"

    def __init__(self, entry_id: str, counterparty_entity_id: str):
        self.entry_id = entry_id
        self.counterparty_entity_id = counterparty_entity_id
        super().__init__(
            f"Entry {entry_id} cannot name its own entity "
            f"{counterparty_entity_id} as counterparty"
        )


# Collaborator exceptions


class DataAccessError(ConsolidationEngineError):
    """The underlying data store failed while serving a request."""

    code: str = "DATA_ACCESS_ERROR"

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(f"Data access failed during {operation}: {detail}")
