"""
Administrator-facing rule store.

Validates and normalizes rule writes before handing them to a persistence
backend: field paths must belong to the supported set, values are coerced
into typed comparisons, and rule keys are unique and immutable.
"""

import uuid
from datetime import datetime, timezone
from typing import List

from shared.errors import DuplicateRuleKeyError, NotFoundError, ValidationError
from shared.logging import get_logger
from .comparison import build_comparison
from .fields import validate_comparison_for_field
from .models import ScreeningRule, RuleCreateRequest, RuleUpdateRequest


class RuleStore:
    """Validated CRUD over screening rules."""

    def __init__(self, persistence):
        self.persistence = persistence
        self.logger = get_logger("screening.rule_store")

    async def create(self, request: RuleCreateRequest) -> ScreeningRule:
        """Create a rule; DuplicateRuleKeyError when the key is taken."""
        comparison = build_comparison(request.operator, request.value)
        definition = validate_comparison_for_field(request.field_path, comparison)

        if await self.persistence.get_rule_by_key(request.rule_key):
            raise DuplicateRuleKeyError(request.rule_key)

        display_order = request.display_order
        if display_order is None:
            display_order = await self.persistence.count_rules() + 1

        now = datetime.now(timezone.utc)
        rule = ScreeningRule(
            id=str(uuid.uuid4()),
            rule_key=request.rule_key,
            rule_type=request.rule_type,
            rule_name=request.rule_name,
            field_path=definition.path.value,
            rule_value=comparison,
            severity=request.severity,
            is_active=request.is_active,
            display_order=display_order,
            description=request.description,
            created_at=now,
            updated_at=now,
        )

        await self.persistence.insert_rule(rule)
        self.logger.info("Rule created", rule_id=rule.id, rule_key=rule.rule_key)
        return rule

    async def update(self, rule_id: str, patch: RuleUpdateRequest) -> ScreeningRule:
        """Apply a partial update. The rule_key cannot change."""
        rule = await self.get(rule_id)

        if patch.rule_key is not None and patch.rule_key != rule.rule_key:
            raise ValidationError(
                "rule_key cannot be changed after creation",
                {"rule_key": rule.rule_key, "requested": patch.rule_key}
            )

        if patch.operator is not None or patch.value is not None or patch.field_path is not None:
            operator = patch.operator if patch.operator is not None else rule.rule_value.operator
            value = patch.value if patch.value is not None else rule.rule_value.value
            comparison = build_comparison(operator, value)
            definition = validate_comparison_for_field(
                patch.field_path if patch.field_path is not None else rule.field_path,
                comparison
            )
            rule.rule_value = comparison
            rule.field_path = definition.path.value

        for name in ("rule_name", "rule_type", "severity", "is_active", "display_order", "description"):
            value = getattr(patch, name)
            if value is not None:
                setattr(rule, name, value)

        rule.updated_at = datetime.now(timezone.utc)
        await self.persistence.update_rule(rule)
        self.logger.info("Rule updated", rule_id=rule.id, rule_key=rule.rule_key)
        return rule

    async def toggle_active(self, rule_id: str) -> ScreeningRule:
        rule = await self.get(rule_id)
        rule.is_active = not rule.is_active
        rule.updated_at = datetime.now(timezone.utc)
        await self.persistence.update_rule(rule)
        self.logger.info("Rule toggled", rule_id=rule.id, rule_key=rule.rule_key, is_active=rule.is_active)
        return rule

    async def delete(self, rule_id: str) -> None:
        if not await self.persistence.delete_rule(rule_id):
            raise NotFoundError("Rule", rule_id)
        self.logger.info("Rule deleted", rule_id=rule_id)

    async def get(self, rule_id: str) -> ScreeningRule:
        rule = await self.persistence.get_rule(rule_id)
        if rule is None:
            raise NotFoundError("Rule", rule_id)
        return rule

    async def list(self, active_only: bool = False) -> List[ScreeningRule]:
        """Rules ordered by (rule_type, display_order)."""
        return await self.persistence.list_rules(active_only=active_only)
