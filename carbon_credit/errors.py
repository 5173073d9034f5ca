class CarbonCreditError(Exception):
    """Base class for every failure the coordinator reports to callers"""

    kind = "error"


class ValidationError(CarbonCreditError):
    """Bad local input, caught before any network or ledger call"""

    kind = "validation_error"


class NotAuthorized(CarbonCreditError):
    """Caller is disconnected or not a registered organization"""

    kind = "not_authorized"


class UploadError(CarbonCreditError):
    kind = "upload_error"


class OracleUnavailable(CarbonCreditError):
    """Yield oracle could not produce an estimate"""

    kind = "oracle_unavailable"


class LedgerTransactionError(CarbonCreditError):
    """A ledger call failed or reverted; the message is the ledger's reason"""

    kind = "ledger_transaction_error"


class InsufficientBalance(LedgerTransactionError):
    kind = "insufficient_balance"


class InvalidStateTransition(CarbonCreditError):
    kind = "invalid_state_transition"


class IntegrationFault(CarbonCreditError):
    """The ledger answered with something we cannot interpret (e.g. a missing event)"""

    kind = "integration_fault"
