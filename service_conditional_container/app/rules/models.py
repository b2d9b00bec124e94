"""
Rule data models for the Conditional Container service.
"""

from typing import Any, Optional, List, Union
from dataclasses import dataclass, field
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .coercion import to_string_form


class RuleLogic(str, Enum):
    """Comparison applied by a rule."""
    EQUAL = "equal"
    NOT_EQUAL = "not-equal"
    CONTAINS = "contains"


class RuleVisibility(str, Enum):
    """Container visibility when a rule holds."""
    SHOW = "show"
    HIDE = "hide"


class NotEqualPolarity(str, Enum):
    """How not-equal rules treat equal values."""
    INVERTED = "inverted"
    PLAIN = "plain"


@dataclass(frozen=True)
class Rule:
    """A single visibility condition."""
    user_key: str
    logic: RuleLogic
    value: str
    visibility: RuleVisibility = RuleVisibility.SHOW

    @property
    def hides(self) -> bool:
        return self.visibility == RuleVisibility.HIDE


class ConditionDefinition(BaseModel):
    """Persisted condition as stored in the widget configuration."""
    user_key: str = Field(..., description="Profile attribute to compare")
    logic: RuleLogic = Field(..., description="Comparison logic")
    user_value: str = Field("", description="Value to compare against")
    visibility: RuleVisibility = Field(RuleVisibility.SHOW, description="Container visibility if condition is true")

    @field_validator("user_value", mode="before")
    @classmethod
    def _stringify_value(cls, value: Any) -> str:
        return value if isinstance(value, str) else to_string_form(value)

    def to_rule(self) -> Rule:
        return Rule(
            user_key=self.user_key,
            logic=self.logic,
            value=self.user_value,
            visibility=self.visibility
        )


class ContainerConfig(BaseModel):
    """Persisted configuration of one conditional container."""
    model_config = ConfigDict(populate_by_name=True)

    use_as_conditional_container: Union[bool, List[bool]] = Field(
        False,
        alias="useAsConditionalContainer",
        description="Evaluate conditions instead of always rendering children"
    )
    conditions: List[ConditionDefinition] = Field(default_factory=list, description="Ordered conditions")

    @property
    def is_conditional(self) -> bool:
        # The authoring form stores the checkbox as a list of checked values
        if isinstance(self.use_as_conditional_container, list):
            return True in self.use_as_conditional_container
        return self.use_as_conditional_container

    def rules(self) -> List[Rule]:
        return [condition.to_rule() for condition in self.conditions]


@dataclass(frozen=True)
class EvaluationOutcome:
    """Result of evaluating one rule."""
    matched: bool
    visible: bool = False


SKIPPED = EvaluationOutcome(matched=False, visible=False)


@dataclass
class DecisionResult:
    """Result of evaluating a rule set."""
    visible: bool
    reason: Optional[str] = None
    matched_rule: Optional[int] = None
    skipped_keys: List[str] = field(default_factory=list)
    evaluation_time_ms: float = 0.0
