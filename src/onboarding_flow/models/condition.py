"""Declarative conditions and response tables used by flow questions.

Questions never carry code.  Validation is a list of ``Condition`` entries
that must all hold, and the acknowledgement shown after an accepted answer
is a ``ResponseSpec`` resolved in a fixed order:

  1. ``by_value`` — exact lookup on the (stringified) answer
  2. ``rules``    — ordered ``(when, text)`` pairs; first match wins
  3. ``default``  — fallback text (may be omitted for no response)

Operators:
  - eq, ne: equality / inequality
  - lt, le, gt, ge: numeric comparisons
  - between: value is [min, max] inclusive
  - in: answer is one of the listed values
  - contains, not_contains: substring / element membership
  - icontains: case-insensitive substring / element membership
  - contains_any: any listed value is contained in the answer
  - is_empty, not_empty: empty string / list / None
  - count_ge, count_le: list length bounds
  - min_length: ``len(answer) >= value``
  - items_min_length: every list item has ``len(item) >= value``
  - not_null: answer is not None
  - matches: regex search against the answer string
"""

from __future__ import annotations

from typing import Any, List, Literal, Optional

from pydantic import BaseModel, Field, model_validator

ConditionOp = Literal[
    "eq", "ne", "lt", "le", "gt", "ge", "between", "in",
    "contains", "icontains", "not_contains", "contains_any",
    "is_empty", "not_empty", "count_ge", "count_le",
    "min_length", "items_min_length", "not_null", "matches",
]

# Operators that take no ``value`` operand.
UNARY_OPS: set[str] = {"is_empty", "not_empty", "not_null"}


class Condition(BaseModel):
    """A single predicate over the answer (or a committed profile field).

    When ``path`` is set (``"category.field"``), the condition reads that
    profile field instead of the answer.  This is how a response can depend
    on a derived sibling such as ``life.age``.
    """

    op: ConditionOp
    value: Any = None
    path: Optional[str] = None

    @model_validator(mode="after")
    def _chk(self):
        if self.op not in UNARY_OPS and self.value is None:
            raise ValueError(f"operator '{self.op}' requires a value")
        if self.op == "between":
            if not isinstance(self.value, list) or len(self.value) != 2:
                raise ValueError("between expects a [min, max] pair")
        return self


class ResponseRule(BaseModel):
    """If ALL conditions in ``when`` hold, ``text`` is the response."""

    when: List[Condition]
    text: str


class ResponseSpec(BaseModel):
    """How to acknowledge an accepted answer.  Every text is a Jinja2 template."""

    by_value: dict[str, str] = Field(default_factory=dict)
    rules: List[ResponseRule] = Field(default_factory=list)
    default: Optional[str] = None
