"""Cart storage — the locally persisted form of a Cart.

One ``SavedCart`` record per owner key holds the cart lines as a JSON
document. Every save replaces the whole document, so when two sessions share
an owner key the last writer wins; nothing is merged.
"""

import json
from datetime import UTC, datetime

from protean.exceptions import ObjectNotFoundError
from protean.fields import DateTime, Identifier, Text
from protean.utils.globals import current_domain

from ordering.domain import ordering


@ordering.projection
class SavedCart:
    owner_key = Identifier(identifier=True, required=True)
    lines = Text()  # JSON: list of {product_id, name, unit_price, image_ref, quantity}
    updated_at = DateTime()


class CartStorage:
    """Load and save cart documents through the SavedCart repository."""

    def load(self, owner_key) -> list[dict]:
        repo = current_domain.repository_for(SavedCart)
        try:
            record = repo.get(owner_key)
        except ObjectNotFoundError:
            return []
        return json.loads(record.lines) if record.lines else []

    def save(self, owner_key, lines: list[dict]) -> None:
        repo = current_domain.repository_for(SavedCart)
        document = json.dumps(lines)
        now = datetime.now(UTC)
        try:
            record = repo.get(owner_key)
            record.lines = document
            record.updated_at = now
        except ObjectNotFoundError:
            record = SavedCart(owner_key=owner_key, lines=document, updated_at=now)
        repo.add(record)
