from typing import Any


class LedgerServiceError(Exception):
    pass


class InsufficientFundsError(LedgerServiceError):
    pass


class InvalidStateTransitionError(LedgerServiceError):
    pass


class NotFoundError(LedgerServiceError):
    entity = "Record"

    def __init__(self, key: Any):
        self.key = key
        super().__init__(f"{self.entity} {key} not found")


class UserNotFoundError(NotFoundError):
    entity = "User"


class EarningNotFoundError(NotFoundError):
    entity = "Earning"


class WithdrawalNotFoundError(NotFoundError):
    entity = "Withdrawal"


class PaymentMethodNotFoundError(NotFoundError):
    entity = "Payment method"


class TeamNotFoundError(NotFoundError):
    entity = "Team"


class TeamMemberNotFoundError(NotFoundError):
    entity = "Team member"


class InviteNotFoundError(NotFoundError):
    entity = "Invite"


class InviteExpiredError(LedgerServiceError):
    pass


class InviteAlreadyConsumedError(LedgerServiceError):
    pass
