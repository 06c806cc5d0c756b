"""
Typed Exception Hierarchy for the Yield Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Routing errors must be handled precisely.  A sweep that parses message
strings to decide whether a router merely had no yield or failed a transfer
will eventually misclassify one of them.

Every error therefore:
  1. Has a TYPED exception class (catch by type, not message)
  2. Has a CODE class attribute (machine-readable, recorded in sweep results)
  3. Carries structured DATA as attributes (router_id, amounts, principals)

Example - WRONG way:
    try:
        router_service.route_yield(router_id, caller)
    except Exception as e:
        if "no yield" in str(e):
            skip()

Example - RIGHT way:
    try:
        router_service.route_yield(router_id, caller)
    except NoYieldError as e:
        log.info("nothing to route", extra={"router_id": e.router_id})

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    YieldKernelError (base)
    |
    +-- AuthorizationError
    |   +-- NotOwnerError
    |   +-- NotFleetOwnerError
    |   +-- NotFleetMemberError
    |
    +-- RouterStateError
    |   +-- AlreadyActiveError
    |   +-- RouterNotActiveError
    |   +-- RouterActiveError
    |   +-- RouterLockedError
    |   +-- AlreadyLockedError
    |   +-- RouterNotLockedError
    |   +-- RouterBusyError
    |   +-- DestinationNotGrantedError
    |   +-- AccessAlreadyGrantedError
    |   +-- AccessAlreadyRevokedError
    |   +-- LockConfirmationRequiredError
    |
    +-- LedgerError
    |   +-- InvalidIndexError
    |   +-- InsufficientBalanceError
    |   +-- NoYieldError
    |   +-- NoBalanceError
    |   +-- InvalidAmountError
    |   +-- AllowanceExceededError
    |   +-- AssetMismatchError
    |
    +-- FleetError
    |   +-- FleetNotFoundError
    |   +-- UnknownRouterError
    |   +-- RouterNotFoundError
    |   +-- RouterAlreadyRegisteredError
    |   +-- InvalidFeeRateError
    |
    +-- TransferError
        +-- TransferFailedError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Authorization   | NOT_OWNER                   | Caller is not the router owner
                | NOT_FLEET_OWNER             | Caller is not the fleet owner
                | NOT_FLEET_MEMBER            | Router belongs to another fleet
----------------|-----------------------------|-----------------------------------------
Router state    | ALREADY_ACTIVE              | activate() on an active router
                | ROUTER_NOT_ACTIVE           | deactivate/lock/route on inactive router
                | ROUTER_ACTIVE               | withdraw/revoke while routing
                | ROUTER_LOCKED               | withdraw/deactivate while locked
                | ALREADY_LOCKED              | lock() on a locked router
                | ROUTER_NOT_LOCKED           | emergency shutdown of unlocked router
                | ROUTER_BUSY                 | sweep found the router mutex taken
                | DESTINATION_NOT_GRANTED     | activate() toward ungranted destination
                | ACCESS_ALREADY_GRANTED      | grant on a granted destination
                | ACCESS_ALREADY_REVOKED      | revoke on a non-granted destination
                | LOCK_CONFIRMATION_REQUIRED  | lock requested without confirm=True
----------------|-----------------------------|-----------------------------------------
Ledger          | INVALID_INDEX               | Oracle index below RAY unity
                | INSUFFICIENT_BALANCE        | Withdrawal above available balance
                | NO_YIELD                    | Payout attempted with zero yield
                | NO_BALANCE                  | Activation with empty balance
                | INVALID_AMOUNT              | Zero or negative amount
                | ALLOWANCE_EXCEEDED          | Token allowance below pull amount
                | ASSET_MISMATCH              | Deposit of a foreign asset
----------------|-----------------------------|-----------------------------------------
Fleet           | FLEET_NOT_FOUND             | Unknown fleet id
                | UNKNOWN_ROUTER              | Unknown router id / owner
                | ROUTER_NOT_FOUND            | Router absent from active list
                | ROUTER_ALREADY_REGISTERED   | Router already in active list
                | INVALID_FEE_RATE            | Fee rate outside [0, 1)
----------------|-----------------------------|-----------------------------------------
Transfer        | TRANSFER_FAILED             | Value-transfer collaborator failed

===============================================================================
HANDLING PATTERNS
===============================================================================

1. Precondition and authorization errors are raised before any state is
   read for mutation; there is nothing to undo.

2. TransferFailedError is raised before ledger mutation is applied; the
   caller's transaction scope rolls back anything else in flight.

3. FleetSweeper is the one place that catches YieldKernelError per router
   and records it instead of propagating.  It raises RouterBusyError itself
   when a router mutex is taken, so busy routers are recorded the same way.
"""


class YieldKernelError(Exception):
    """
    Base exception for all yield kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "YIELD_KERNEL_ERROR"


# Authorization


class AuthorizationError(YieldKernelError):
    """Base exception for caller authorization failures."""

    code: str = "AUTHORIZATION_ERROR"


class NotOwnerError(AuthorizationError):
    """Caller is not the owner of the router."""

    code: str = "NOT_OWNER"

    def __init__(self, router_id: str, caller: str):
        self.router_id = router_id
        self.caller = caller
        super().__init__(f"Caller {caller} is not the owner of router {router_id}")


class NotFleetOwnerError(AuthorizationError):
    """Caller is not the fleet owner."""

    code: str = "NOT_FLEET_OWNER"

    def __init__(self, fleet_id: str, caller: str):
        self.fleet_id = fleet_id
        self.caller = caller
        super().__init__(f"Caller {caller} is not the owner of fleet {fleet_id}")


class NotFleetMemberError(AuthorizationError):
    """Router was not provisioned by this fleet."""

    code: str = "NOT_FLEET_MEMBER"

    def __init__(self, fleet_id: str, router_id: str):
        self.fleet_id = fleet_id
        self.router_id = router_id
        super().__init__(f"Router {router_id} is not a member of fleet {fleet_id}")


# Router state machine


class RouterStateError(YieldKernelError):
    """Base exception for state machine guard violations."""

    code: str = "ROUTER_STATE_ERROR"


class AlreadyActiveError(RouterStateError):
    """Router is already routing yield."""

    code: str = "ALREADY_ACTIVE"

    def __init__(self, router_id: str, current_destination: str | None):
        self.router_id = router_id
        self.current_destination = current_destination
        super().__init__(
            f"Router {router_id} is already active toward {current_destination}"
        )


class RouterNotActiveError(RouterStateError):
    """Operation requires an active router."""

    code: str = "ROUTER_NOT_ACTIVE"

    def __init__(self, router_id: str):
        self.router_id = router_id
        super().__init__(f"Router {router_id} is not active")


class RouterActiveError(RouterStateError):
    """Operation requires an inactive router."""

    code: str = "ROUTER_ACTIVE"

    def __init__(self, router_id: str, operation: str):
        self.router_id = router_id
        self.operation = operation
        super().__init__(f"Cannot {operation}: router {router_id} is active")


class RouterLockedError(RouterStateError):
    """Router is locked until the destination allowance is paid out."""

    code: str = "ROUTER_LOCKED"

    def __init__(self, router_id: str, operation: str):
        self.router_id = router_id
        self.operation = operation
        super().__init__(f"Cannot {operation}: router {router_id} is locked")


class AlreadyLockedError(RouterStateError):
    """Router is already locked."""

    code: str = "ALREADY_LOCKED"

    def __init__(self, router_id: str):
        self.router_id = router_id
        super().__init__(f"Router {router_id} is already locked")


class RouterNotLockedError(RouterStateError):
    """Emergency shutdown only applies to locked routers."""

    code: str = "ROUTER_NOT_LOCKED"

    def __init__(self, router_id: str):
        self.router_id = router_id
        super().__init__(f"Router {router_id} is not locked")


class RouterBusyError(RouterStateError):
    """Another operation holds the router mutex; the sweep skipped it."""

    code: str = "ROUTER_BUSY"

    def __init__(self, router_id: str):
        self.router_id = router_id
        super().__init__(f"Router {router_id} is busy with another operation")


class DestinationNotGrantedError(RouterStateError):
    """Destination has no granted access record."""

    code: str = "DESTINATION_NOT_GRANTED"

    def __init__(self, router_id: str, destination: str):
        self.router_id = router_id
        self.destination = destination
        super().__init__(
            f"Destination {destination} has not been granted access on router {router_id}"
        )


class AccessAlreadyGrantedError(RouterStateError):
    """Grant requested for a destination that is already granted."""

    code: str = "ACCESS_ALREADY_GRANTED"

    def __init__(self, router_id: str, destination: str):
        self.router_id = router_id
        self.destination = destination
        super().__init__(
            f"Access already granted to {destination} on router {router_id}"
        )


class AccessAlreadyRevokedError(RouterStateError):
    """Revoke requested for a destination that is not granted."""

    code: str = "ACCESS_ALREADY_REVOKED"

    def __init__(self, router_id: str, destination: str):
        self.router_id = router_id
        self.destination = destination
        super().__init__(
            f"Access already revoked for {destination} on router {router_id}"
        )


class LockConfirmationRequiredError(RouterStateError):
    """
    Lock requested without explicit operator confirmation.

    Locking freezes principal until the destination allowance is fully paid,
    so the public entry point refuses to lock unless confirm=True.
    """

    code: str = "LOCK_CONFIRMATION_REQUIRED"

    def __init__(self, router_id: str):
        self.router_id = router_id
        super().__init__(
            f"Locking router {router_id} freezes principal until its allowance "
            f"is paid out; pass confirm=True to proceed"
        )


# Ledger arithmetic


class LedgerError(YieldKernelError):
    """Base exception for balance arithmetic and degenerate operations."""

    code: str = "LEDGER_ERROR"


class InvalidIndexError(LedgerError):
    """Oracle returned an index below the RAY unity floor."""

    code: str = "INVALID_INDEX"

    def __init__(self, asset: str, index: int):
        self.asset = asset
        self.index = index
        super().__init__(f"Invalid index {index} for asset {asset}")


class InsufficientBalanceError(LedgerError):
    """Requested amount exceeds the available balance."""

    code: str = "INSUFFICIENT_BALANCE"

    def __init__(self, holder: str, requested: int, available: int):
        self.holder = holder
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient balance for {holder}: requested {requested}, "
            f"available {available}"
        )


class NoYieldError(LedgerError):
    """Payout attempted with zero accrued yield."""

    code: str = "NO_YIELD"

    def __init__(self, router_id: str, index: int):
        self.router_id = router_id
        self.index = index
        super().__init__(f"Router {router_id} has no yield at index {index}")


class NoBalanceError(LedgerError):
    """Activation attempted with an empty balance."""

    code: str = "NO_BALANCE"

    def __init__(self, router_id: str):
        self.router_id = router_id
        super().__init__(f"Router {router_id} has no balance")


class InvalidAmountError(LedgerError):
    """Amount must be a positive integer."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, amount: object, field: str = "amount"):
        self.amount = amount
        self.field = field
        super().__init__(f"Invalid {field}: {amount!r}")


class AllowanceExceededError(LedgerError):
    """Token allowance granted to the router is below the pull amount."""

    code: str = "ALLOWANCE_EXCEEDED"

    def __init__(self, owner: str, required: int, approved: int):
        self.owner = owner
        self.required = required
        self.approved = approved
        super().__init__(
            f"Allowance exceeded for {owner}: required {required}, approved {approved}"
        )


class AssetMismatchError(LedgerError):
    """Deposit of an asset other than the configured yield-bearing asset."""

    code: str = "ASSET_MISMATCH"

    def __init__(self, expected: str, received: str):
        self.expected = expected
        self.received = received
        super().__init__(f"Expected asset {expected}, received {received}")


# Fleet registry


class FleetError(YieldKernelError):
    """Base exception for fleet registry errors."""

    code: str = "FLEET_ERROR"


class FleetNotFoundError(FleetError):
    """Fleet with given ID was not found."""

    code: str = "FLEET_NOT_FOUND"

    def __init__(self, fleet_id: str):
        self.fleet_id = fleet_id
        super().__init__(f"Fleet not found: {fleet_id}")


class UnknownRouterError(FleetError):
    """Router with given ID (or owner) was not found."""

    code: str = "UNKNOWN_ROUTER"

    def __init__(self, router_ref: str):
        self.router_ref = router_ref
        super().__init__(f"Unknown router: {router_ref}")


class RouterNotFoundError(FleetError):
    """Router is not in the fleet's active list."""

    code: str = "ROUTER_NOT_FOUND"

    def __init__(self, fleet_id: str, router_id: str):
        self.fleet_id = fleet_id
        self.router_id = router_id
        super().__init__(f"Router {router_id} is not active in fleet {fleet_id}")


class RouterAlreadyRegisteredError(FleetError):
    """Router is already in the fleet's active list."""

    code: str = "ROUTER_ALREADY_REGISTERED"

    def __init__(self, fleet_id: str, router_id: str):
        self.fleet_id = fleet_id
        self.router_id = router_id
        super().__init__(f"Router {router_id} already active in fleet {fleet_id}")


class InvalidFeeRateError(FleetError):
    """Fee rate must satisfy 0 <= rate < RAY."""

    code: str = "INVALID_FEE_RATE"

    def __init__(self, fee_rate: int):
        self.fee_rate = fee_rate
        super().__init__(f"Invalid fee rate: {fee_rate}")


# External transfers


class TransferError(YieldKernelError):
    """Base exception for value-transfer failures."""

    code: str = "TRANSFER_ERROR"


class TransferFailedError(TransferError):
    """The value-transfer collaborator returned False or raised."""

    code: str = "TRANSFER_FAILED"

    def __init__(self, sender: str, recipient: str, amount: int, reason: str = ""):
        self.sender = sender
        self.recipient = recipient
        self.amount = amount
        self.reason = reason
        detail = f": {reason}" if reason else ""
        super().__init__(
            f"Transfer of {amount} from {sender} to {recipient} failed{detail}"
        )
