# accounting/services/template_resolver.py

"""
======================================================
PATH: accounting/services/template_resolver.py
======================================================
POSTING TEMPLATE RESOLVER

Turns a rule's posting_template + event data into concrete lines:
    account code, debit/credit amount, description, subledger tag

Template line shapes accepted (both may appear in one template):

    snake_case (current):
        {"account_code_field": "expense_account", "account_code": "5100",
         "account_code_fallback": "5100", "debit_field": "base_amount",
         "credit_field": null, "description_template": "Expense: {title}",
         "subledger_type": "vendor", "subledger_id_field": "vendor_id"}

    camelCase (legacy seeds):
        {"side": "credit", "accountCode": "2100", "amountField": "total_amount",
         "subledgerType": "vendor", "subledgerField": "vendor_id", "skipIfZero": true}

Resolution rules:
- Account code priority: value of account_code_field (if present + non-blank)
  > static account_code > account_code_fallback. None of them -> line dropped.
- Amount: debit_field / credit_field (a field or "a + b" sum), else legacy
  side + amountField. Amount <= 0 -> line dropped ("not applicable").
- Description: "{field}" placeholders; defaults to the entry description.
- Subledger: tagged only when subledger_type is set AND the id field has a
  value in the event; otherwise the line is control-account-only.

Dropped lines are logged and returned (never raised). Only a structurally
broken template, or an amount too large for the money columns, raises
TemplateResolutionError.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from decimal import Decimal

from accounting.services.event_values import (
    EventData,
    coerce_event_data,
    render_template,
    resolve_amount,
)
from accounting.services.exceptions import TemplateResolutionError
from accounting.services.money import ZERO, q2

logger = logging.getLogger(__name__)

DEFAULT_DESCRIPTION = "Auto-posted entry"

DROP_NO_ACCOUNT = "no_account_code"
DROP_NO_AMOUNT = "zero_amount"
DROP_BAD_SIDE = "invalid_side"
DROP_UNKNOWN_ACCOUNT = "unknown_account"

# Largest value a DecimalField(max_digits=18, decimal_places=2) can hold.
MAX_LINE_AMOUNT = Decimal("9999999999999999.99")


def _first(raw: Mapping, *keys: str) -> str:
    for key in keys:
        value = raw.get(key)
        if value is not None and str(value).strip():
            return str(value).strip()
    return ""


@dataclass(frozen=True)
class TemplateLine:
    index: int
    account_code_field: str = ""
    account_code: str = ""
    account_code_fallback: str = ""
    debit_field: str = ""
    credit_field: str = ""
    side: str = ""
    description: str = ""
    description_template: str = ""
    subledger_type: str = ""
    subledger_id_field: str = ""

    @classmethod
    def from_json(cls, index: int, raw: Mapping) -> "TemplateLine":
        debit_field = _first(raw, "debit_field", "debitField")
        credit_field = _first(raw, "credit_field", "creditField")
        side = _first(raw, "side").lower()

        amount_field = _first(raw, "amountField", "amount_field")
        if amount_field and not (debit_field or credit_field):
            if side == "debit":
                debit_field = amount_field
            elif side == "credit":
                credit_field = amount_field

        return cls(
            index=index,
            account_code_field=_first(raw, "account_code_field", "accountCodeField"),
            account_code=_first(raw, "account_code", "accountCode"),
            account_code_fallback=_first(raw, "account_code_fallback", "accountCodeFallback"),
            debit_field=debit_field,
            credit_field=credit_field,
            side=side,
            description=_first(raw, "description"),
            description_template=_first(raw, "description_template", "descriptionTemplate"),
            subledger_type=_first(raw, "subledger_type", "subledgerType").lower(),
            subledger_id_field=_first(raw, "subledger_id_field", "subledgerIdField", "subledgerField"),
        )


@dataclass(frozen=True)
class ResolvedLine:
    account_code: str
    debit: Decimal
    credit: Decimal
    description: str = ""
    subledger_type: str = ""
    subledger_id: str = ""
    template_index: int | None = None
    currency: str = ""
    exchange_rate: Decimal | None = None

    @property
    def has_subledger(self) -> bool:
        return bool(self.subledger_type and self.subledger_id)


@dataclass(frozen=True)
class DroppedLine:
    template_index: int | None
    reason: str
    account_code: str = ""
    detail: str = ""


@dataclass
class ResolutionResult:
    lines: list[ResolvedLine] = field(default_factory=list)
    dropped: list[DroppedLine] = field(default_factory=list)
    description: str = DEFAULT_DESCRIPTION
    narration: str = ""


def parse_template(template) -> tuple[Mapping, list[TemplateLine]]:
    if not isinstance(template, Mapping):
        raise TemplateResolutionError("Posting template must be an object")

    raw_lines = template.get("lines")
    if not isinstance(raw_lines, list) or not raw_lines:
        raise TemplateResolutionError('Posting template needs a non-empty "lines" list')

    lines: list[TemplateLine] = []
    for i, raw in enumerate(raw_lines):
        if not isinstance(raw, Mapping):
            raise TemplateResolutionError(f"Template line {i} must be an object")
        lines.append(TemplateLine.from_json(i, raw))
    return template, lines


def resolve_account_code(line: TemplateLine, data: EventData) -> str:
    if line.account_code_field:
        value = data.get(line.account_code_field)
        if value is not None and not value.is_blank():
            return value.as_text().strip()
    return line.account_code or line.account_code_fallback


def _line_amount(line: TemplateLine, expression: str, data: EventData) -> Decimal:
    amount = resolve_amount(expression, data)
    if abs(amount) > MAX_LINE_AMOUNT:
        raise TemplateResolutionError(
            f"Template line {line.index}: {expression!r} = {amount} exceeds the largest storable amount"
        )
    return q2(amount)


def resolve(template, event_data) -> ResolutionResult:
    """
    Resolve every template line against event data.

    Returns surviving lines in template order plus the dropped ones.
    """
    data = coerce_event_data(event_data)
    header, lines = parse_template(template)

    description_tpl = _first(header, "description_template", "descriptionTemplate")
    narration_tpl = _first(header, "narration_template", "narrationTemplate")

    result = ResolutionResult(
        description=render_template(description_tpl, data).strip() or DEFAULT_DESCRIPTION,
        narration=render_template(narration_tpl, data).strip(),
    )

    for line in lines:
        code = resolve_account_code(line, data)
        if not code:
            _drop(result, line, DROP_NO_ACCOUNT, detail=f"field={line.account_code_field!r}")
            continue

        if not (line.debit_field or line.credit_field):
            _drop(result, line, DROP_BAD_SIDE, account_code=code, detail=f"side={line.side!r}")
            continue

        net = _line_amount(line, line.debit_field, data) - _line_amount(line, line.credit_field, data)
        if net == ZERO:
            _drop(result, line, DROP_NO_AMOUNT, account_code=code)
            continue

        # A lone debit_field/credit_field <= 0 is "not applicable", not a flip.
        if (net < ZERO and not line.credit_field) or (net > ZERO and not line.debit_field):
            _drop(result, line, DROP_NO_AMOUNT, account_code=code, detail=f"amount={net}")
            continue

        debit = net if net > ZERO else ZERO
        credit = -net if net < ZERO else ZERO

        subledger_type, subledger_id = "", ""
        if line.subledger_type and line.subledger_id_field:
            value = data.get(line.subledger_id_field)
            if value is not None and not value.is_blank():
                subledger_type = line.subledger_type
                subledger_id = value.as_text().strip()

        line_description = render_template(
            line.description_template or line.description, data
        ).strip() or result.description

        result.lines.append(
            ResolvedLine(
                account_code=code,
                debit=debit,
                credit=credit,
                description=line_description[:500],
                subledger_type=subledger_type,
                subledger_id=subledger_id,
                template_index=line.index,
            )
        )

    return result


def _drop(result: ResolutionResult, line: TemplateLine, reason: str, *, account_code: str = "", detail: str = ""):
    logger.info(
        "Dropping template line %s (%s) account=%s %s",
        line.index,
        reason,
        account_code or "-",
        detail,
    )
    result.dropped.append(
        DroppedLine(template_index=line.index, reason=reason, account_code=account_code, detail=detail)
    )
