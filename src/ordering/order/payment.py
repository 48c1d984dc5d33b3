"""Order payment — commands and handler.

Records the processor's verdict against a placed order. Both updates are
field overwrites, so replaying the same verdict leaves the order unchanged.
"""

from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.order.order import Order


@ordering.command(part_of="Order")
class RecordPaymentVerified:
    order_id = Identifier(required=True)
    processor_payment_ref = String(required=True, max_length=255)
    processor_signature = String(max_length=512)


@ordering.command(part_of="Order")
class RecordPaymentFailure:
    order_id = Identifier(required=True)
    reason = String(required=True, max_length=500)


@ordering.command_handler(part_of=Order)
class RecordPaymentHandler:
    @handle(RecordPaymentVerified)
    def record_payment_verified(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.mark_paid(
            processor_payment_ref=command.processor_payment_ref,
            processor_signature=command.processor_signature,
        )
        repo.add(order)

    @handle(RecordPaymentFailure)
    def record_payment_failure(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.mark_payment_failed(reason=command.reason)
        repo.add(order)
