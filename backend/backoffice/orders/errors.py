"""Exception taxonomy of the order workflow.

Repository failures propagate to the store, which keeps fetch failures in its
`error` field and re-raises transition failures to the calling surface.
"""

NOT_FOUND_OR_FORBIDDEN_MESSAGE = (
    'Could not update the order. Verify that it exists and that you have permission to modify it.'
)


class OrderWorkflowError(Exception):
    default_message = 'Order workflow error'

    def __init__(self, message: str = None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message


class RepositoryError(OrderWorkflowError):
    """The order list query failed (network, auth or server fault)."""
    default_message = 'Error loading orders'


class TransitionError(OrderWorkflowError):
    default_message = 'Error updating the order status'


class NotFoundOrForbiddenError(TransitionError):
    """A status update matched zero rows."""
    default_message = NOT_FOUND_OR_FORBIDDEN_MESSAGE


class TransitionTransportError(TransitionError):
    """The update never reached a server outcome."""


class InvalidStatusError(OrderWorkflowError):
    default_message = 'status invalid'


class ConfirmationRequiredError(OrderWorkflowError):
    default_message = 'Deleting all orders requires explicit confirmation'


class SubscriptionError(OrderWorkflowError):
    default_message = 'Realtime subscription failed'


class InvalidDateFilterError(OrderWorkflowError):
    default_message = 'date must be YYYY-MM-DD'


class SeedDataError(OrderWorkflowError):
    """No active product with an active variant to build test orders from."""
    default_message = 'No active products with variants are available to create test orders'
