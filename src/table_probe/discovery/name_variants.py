"""
Field name variant expansion.

Maps one payload field identifier to the column-name spellings it could have
in the backing store: casing conventions, plural/singular forms and names with
common accessor prefixes or type-ish suffixes removed.
"""

from __future__ import annotations

import re
from typing import Set

ACCESSOR_PREFIXES = ("is", "has", "get", "set", "use", "can", "should")
TYPE_SUFFIXES = ("Id", "ID", "Type", "Status", "Date", "Time", "At", "By")

_CAPITAL_RE = re.compile(r"[A-Z]")
_PREFIX_RE = re.compile(r"^(%s)(?=[A-Z_])" % "|".join(ACCESSOR_PREFIXES))
_SUFFIX_RE = re.compile(r"(%s)$" % "|".join(TYPE_SUFFIXES))


def to_snake_case(name: str) -> str:
    """
    Convert camelCase/PascalCase to snake_case.

    A capital letter gets a leading underscore unless it is the first
    character: orderType -> order_type, OrderType -> order_type.
    """
    return _CAPITAL_RE.sub(
        lambda m: m.group(0).lower() if m.start() == 0 else "_" + m.group(0).lower(),
        name,
    )


def _spellings(name: str) -> Set[str]:
    """The name itself, lower-cased and snake-cased."""
    return {name, name.lower(), to_snake_case(name)}


def expand_field_variants(field: str) -> Set[str]:
    """
    Return every plausible column spelling for a payload field.

    Examples:
        orderId     -> orderId, orderid, order_id, ORDER_ID, order-id, OrderId, ...
        items       -> items, item, ...
        isActive    -> isActive, active, Active, ...

    The result always contains the field itself and its lower-case form.
    """
    variants: Set[str] = {field, field.lower()}

    snake = to_snake_case(field)
    variants.add(snake)
    if snake.startswith("_"):
        variants.add(snake[1:])
    variants.add(snake.upper())
    variants.add(snake.replace("_", "-"))
    variants.add(field[:1].upper() + field[1:])

    variants.update({field + "s", snake + "s", field.lower() + "s"})
    if field.endswith(("s", "S")):
        variants.update(_spellings(field[:-1]))

    without_prefix = _PREFIX_RE.sub("", field).lstrip("_")
    if without_prefix != field:
        variants.update(_spellings(without_prefix))

    without_suffix = _SUFFIX_RE.sub("", field)
    if without_suffix != field:
        variants.update(_spellings(without_suffix))

    # userId -> user_id, userid
    if field.lower().endswith("id"):
        base = field[:-2]
        base_snake = to_snake_case(base)
        variants.update({
            base_snake + "_id",
            base_snake + "id",
            base.lower() + "_id",
            base.lower() + "id",
        })

    return {v for v in variants if v}
