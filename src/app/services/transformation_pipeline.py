"""Transformation Pipeline

Applies an ordered rule list to a record, returning a new record.
"""
import re
from typing import Optional
from src.domain.enums import TransformRuleType
from src.domain.log_record import LogRecord
from src.domain.message_transformation import (
    MessageTransformation,
    SUPPORTED_TRANSFORMATION_VERSIONS,
    TransformRule,
)


class TransformationError(Exception):
    """Raised when a rule cannot be applied to a record"""
    def __init__(self, message: str, rule_index: Optional[int] = None):
        self.message = message
        self.rule_index = rule_index
        super().__init__(message)


class TransformationPipeline:

    def transform(
        self, record: LogRecord, transformation: Optional[MessageTransformation]
    ) -> LogRecord:
        """
        Apply every rule in order.

        Args:
            record: Source record (never modified)
            transformation: Rule list, or None for the identity transform

        Returns:
            LogRecord: The rewritten record

        Raises:
            TransformationError: If a rule fails for this record
        """
        if transformation is None or not transformation.rules:
            return record
        if transformation.version not in SUPPORTED_TRANSFORMATION_VERSIONS:
            raise TransformationError(
                f"Unsupported transformation version: {transformation.version}"
            )

        result = record
        for index, rule in enumerate(transformation.rules):
            try:
                result = self._apply(result, rule)
            except TransformationError:
                raise
            except (re.error, TypeError, ValueError) as e:
                raise TransformationError(
                    f"Rule {index} ({rule.type.value}) failed: {e}", rule_index=index
                ) from e
        return result

    def _apply(self, record: LogRecord, rule: TransformRule) -> LogRecord:
        rule_type = rule.type
        if rule_type == TransformRuleType.SET_KEY:
            return record.with_changes(key=rule.value)
        elif rule_type == TransformRuleType.REMOVE_KEY:
            return record.with_changes(key=None)
        elif rule_type == TransformRuleType.SET_VALUE:
            return record.with_changes(value=rule.value)
        elif rule_type == TransformRuleType.REPLACE_VALUE:
            if record.value is None:
                raise TransformationError("REPLACE_VALUE applied to a record without a value")
            replaced = re.sub(rule.pattern, rule.value or "", record.value)
            return record.with_changes(value=replaced)
        elif rule_type == TransformRuleType.SET_HEADER:
            headers = dict(record.headers)
            headers[rule.key] = rule.value if rule.value is not None else ""
            return record.with_changes(headers=headers)
        elif rule_type == TransformRuleType.REMOVE_HEADER:
            headers = {k: v for k, v in record.headers.items() if k != rule.key}
            return record.with_changes(headers=headers)

        raise TransformationError(f"Unsupported transform rule type: {rule_type}")
