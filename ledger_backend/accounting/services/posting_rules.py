# accounting/services/posting_rules.py

"""
POSTING RULE ENGINE (AUTHORITATIVE)

Answers ONE question:
"Which configured rule should turn this business event into a journal entry?"

Candidate rules:
- company-specific OR global (company NULL); a company rule shadows a
  global rule with the same rule_code
- active, matching source_type + trigger_event
- effective_from <= date <= effective_to (open ends allowed)
- rule-pack version (financial_year) equal to the event's fiscal year, or NULL

Selection (most specific wins):
1. most matched condition keys
2. company-specific before global
3. lower priority number
4. most recent effective_from
5. lowest id (stable tie-break)

THIS MODULE DOES NOT:
- Write to the database
- Resolve accounts or amounts (see template_resolver)
- Treat "no rule" as an error: None means "no auto-posting configured"
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date

from django.db.models import Q

from accounting.models.company import Company
from accounting.models.posting_rule import PostingRule
from accounting.services.event_values import EventData, coerce_event_data, matched_condition_count
from accounting.services.fiscal import fiscal_period

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RuleMatch:
    rule: PostingRule
    matched_keys: int


def candidate_rules(
    *,
    company: Company,
    source_type: str,
    trigger_event: str,
    on_date: date,
) -> list[PostingRule]:
    fy = fiscal_period(on_date).financial_year

    qs = (
        PostingRule.objects.filter(
            Q(company=company) | Q(company__isnull=True),
            source_type=source_type,
            trigger_event=trigger_event,
            is_active=True,
        )
        .filter(Q(effective_from__isnull=True) | Q(effective_from__lte=on_date))
        .filter(Q(effective_to__isnull=True) | Q(effective_to__gte=on_date))
        .filter(Q(financial_year__isnull=True) | Q(financial_year=fy))
    )
    rules = list(qs)

    company_codes = {r.rule_code for r in rules if r.company_id is not None}
    return [r for r in rules if r.company_id is not None or r.rule_code not in company_codes]


def _specificity_key(match: RuleMatch):
    rule = match.rule
    effective = rule.effective_from.toordinal() if rule.effective_from else 0
    return (
        -match.matched_keys,
        0 if rule.company_id is not None else 1,
        rule.priority,
        -effective,
        rule.pk,
    )


def rank_rules(rules: list[PostingRule], data: EventData) -> list[RuleMatch]:
    matches: list[RuleMatch] = []
    for rule in rules:
        count = matched_condition_count(rule.conditions, data)
        if count is None:
            continue
        matches.append(RuleMatch(rule=rule, matched_keys=count))

    matches.sort(key=_specificity_key)
    return matches


def select_rule(
    *,
    company: Company,
    source_type: str,
    trigger_event: str = PostingRule.DEFAULT_TRIGGER,
    event_data,
    on_date: date,
) -> RuleMatch | None:
    data = coerce_event_data(event_data)

    rules = candidate_rules(
        company=company,
        source_type=source_type,
        trigger_event=trigger_event,
        on_date=on_date,
    )
    ranked = rank_rules(rules, data)

    if not ranked:
        logger.info(
            "No posting rule for company=%s source_type=%s trigger=%s (%d candidates)",
            company.code,
            source_type,
            trigger_event,
            len(rules),
        )
        return None

    best = ranked[0]
    logger.debug(
        "Selected posting rule %s (matched_keys=%d) for %s/%s",
        best.rule.rule_code,
        best.matched_keys,
        source_type,
        trigger_event,
    )
    return best
