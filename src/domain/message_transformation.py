"""MessageTransformation value objects

A versioned, ordered list of rewrite rules applied to each matched record.
"""
from typing import List, Optional
from pydantic import BaseModel, Field
from src.domain.enums import TransformRuleType

SUPPORTED_TRANSFORMATION_VERSIONS = (1,)


class TransformRule(BaseModel):
    """
    One rewrite step.

    Field usage per type:
    - SET_KEY / SET_VALUE: ``value``
    - REMOVE_KEY: no fields
    - REPLACE_VALUE: ``pattern`` (regex) and ``value`` (replacement)
    - SET_HEADER: ``key`` and ``value``
    - REMOVE_HEADER: ``key``
    """
    type: TransformRuleType
    key: Optional[str] = None
    value: Optional[str] = None
    pattern: Optional[str] = None


class MessageTransformation(BaseModel):
    version: int = 1
    rules: List[TransformRule] = Field(default_factory=list)
