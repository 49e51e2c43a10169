"""
Status distribution of order line items.

An item's quantity is partitioned across the item statuses
(pendiente, preparando, listo, entregado) as a mapping status -> units.
Every function here returns a new mapping whose values sum to the item
quantity and never holds a zero or negative entry.

Usage:
    from rest_api.services.domain import status_groups

    dist = status_groups.initial(5)                       # {"pendiente": 5}
    dist = status_groups.move(dist, 2, "pendiente", "preparando")
    # {"pendiente": 3, "preparando": 2}
"""

from __future__ import annotations

from collections.abc import Mapping

from shared.config.constants import OrderStatus
from shared.utils.exceptions import ValidationError

# Least advanced first
ITEM_STATUS_ORDER: tuple[str, ...] = tuple(OrderStatus.ITEM)


def validate_item_status(status: str) -> str:
    if status not in ITEM_STATUS_ORDER:
        raise ValidationError(
            f"Estado de item inválido: '{status}'. "
            f"Valores permitidos: {', '.join(ITEM_STATUS_ORDER)}",
            status=status,
        )
    return status


def validate_order_status(status: str) -> str:
    if status not in OrderStatus.ALL:
        raise ValidationError(
            f"Estado inválido: '{status}'. "
            f"Valores permitidos: {', '.join(OrderStatus.ALL)}",
            status=status,
        )
    return status


def total(distribution: Mapping[str, int]) -> int:
    return sum(distribution.values())


def initial(quantity: int) -> dict[str, int]:
    """A new item starts with every unit pending."""
    return {OrderStatus.PENDING: quantity}


def collapse(quantity: int, status: str) -> dict[str, int]:
    """Bulk override: every unit of the item in one status."""
    validate_item_status(status)
    return {status: quantity}


def move(
    distribution: Mapping[str, int],
    quantity: int,
    from_status: str,
    to_status: str,
) -> dict[str, int]:
    """
    Move `quantity` units from one status to another.

    Raises:
        ValidationError: unknown status, quantity < 1 or the source
            status holds fewer units than requested.
    """
    validate_item_status(from_status)
    validate_item_status(to_status)
    if quantity < 1:
        raise ValidationError("La cantidad a mover debe ser al menos 1", quantity=quantity)

    available = distribution.get(from_status, 0)
    if available < quantity:
        raise ValidationError(
            f"No hay suficientes unidades en estado '{from_status}'. "
            f"Disponibles: {available}, solicitadas: {quantity}",
            error={"from_status": from_status, "available": available, "requested": quantity},
        )

    result = dict(distribution)
    if from_status == to_status:
        return result

    result[from_status] = available - quantity
    if result[from_status] == 0:
        del result[from_status]
    result[to_status] = result.get(to_status, 0) + quantity
    return result


def resize(distribution: Mapping[str, int], new_quantity: int) -> dict[str, int]:
    """
    Carry a distribution over to a new item quantity.

    Extra units are added as pending. Removed units are taken from the
    least advanced statuses first, so delivered units are the last to go.
    """
    if new_quantity < 1:
        raise ValidationError("La cantidad debe ser al menos 1", quantity=new_quantity)

    current = total(distribution)
    result = {status: qty for status, qty in distribution.items() if qty > 0}

    if new_quantity > current:
        result[OrderStatus.PENDING] = result.get(OrderStatus.PENDING, 0) + (new_quantity - current)
        return result

    to_remove = current - new_quantity
    for status in ITEM_STATUS_ORDER:
        if to_remove == 0:
            break
        held = result.get(status, 0)
        if held == 0:
            continue
        taken = min(held, to_remove)
        result[status] = held - taken
        to_remove -= taken
        if result[status] == 0:
            del result[status]
    return result


def is_fully_delivered(distribution: Mapping[str, int]) -> bool:
    return bool(distribution) and all(
        status == OrderStatus.DELIVERED for status, qty in distribution.items() if qty > 0
    )


def as_groups(distribution: Mapping[str, int]) -> list[tuple[str, int]]:
    """(status, quantity) pairs in lifecycle order."""
    return [
        (status, distribution[status])
        for status in ITEM_STATUS_ORDER
        if distribution.get(status, 0) > 0
    ]
