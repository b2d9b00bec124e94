"""
Rule evaluation engine for the Conditional Container service.
"""

import time
from typing import Any, Callable, Optional, Sequence

from shared.logging import get_logger
from shared.metrics import MetricsCollector
from .coercion import (
    CoercedValue, ValueShape, classify, decode_html_entities, is_number,
    to_number, to_string_form
)
from .models import (
    Rule, RuleLogic, NotEqualPolarity, EvaluationOutcome, DecisionResult, SKIPPED
)
from ..profile.resolver import AttributeResolver, ProfileSource

DiagnosticSink = Callable[[str], None]

USER_NOT_LOGGED_IN = "User is not logged in"


def missing_key_message(user_key: str) -> str:
    return f"User doesn't contain key: {user_key}"


class RuleEvaluator:
    """Evaluates one rule against one attribute value."""

    def __init__(self, not_equal_polarity: NotEqualPolarity = NotEqualPolarity.INVERTED):
        self.not_equal_polarity = NotEqualPolarity(not_equal_polarity)
        self.logger = get_logger("conditional_container.rule_evaluator")

    def evaluate(self, rule: Rule, attribute_value: Any) -> EvaluationOutcome:
        """Evaluate ``rule`` against an attribute value taken from the profile."""
        if rule.logic == RuleLogic.EQUAL:
            return self._evaluate_equal(rule, attribute_value)

        if rule.logic == RuleLogic.NOT_EQUAL:
            return self._evaluate_not_equal(rule, attribute_value)

        if rule.logic == RuleLogic.CONTAINS:
            matched = self._contains(classify(attribute_value), rule.value)
            return EvaluationOutcome(matched=matched, visible=matched and not rule.hides)

        self.logger.warning("Unknown rule logic", logic=rule.logic, user_key=rule.user_key)
        return SKIPPED

    def _evaluate_equal(self, rule: Rule, attribute_value: Any) -> EvaluationOutcome:
        if to_string_form(attribute_value) == rule.value:
            return EvaluationOutcome(matched=True, visible=not rule.hides)
        return SKIPPED

    def _evaluate_not_equal(self, rule: Rule, attribute_value: Any) -> EvaluationOutcome:
        if to_string_form(attribute_value) != rule.value:
            return EvaluationOutcome(matched=True, visible=not rule.hides)

        # Equal values flip the polarity: a "hide unless" rule shows the container
        if self.not_equal_polarity == NotEqualPolarity.INVERTED:
            return EvaluationOutcome(matched=True, visible=rule.hides)
        return SKIPPED

    def _contains(self, coerced: CoercedValue, rule_value: str) -> bool:
        if coerced.is_list:
            return self._list_contains(coerced.value, rule_value)

        if coerced.shape == ValueShape.DELIMITED:
            return decode_html_entities(rule_value) in coerced.value

        return rule_value in to_string_form(coerced.value)

    @staticmethod
    def _list_contains(items: Sequence[Any], rule_value: str) -> bool:
        if rule_value in items:
            return True

        # Lists may hold numbers while rule values are always text
        number = to_number(rule_value)
        if number is None:
            return False
        return any(is_number(item) and item == number for item in items)


class RuleSetEvaluator:
    """Evaluates an ordered rule list, first decisive rule wins."""

    def __init__(self, rule_evaluator: Optional[RuleEvaluator] = None,
                 metrics: Optional[MetricsCollector] = None):
        self.rule_evaluator = rule_evaluator or RuleEvaluator()
        self.metrics = metrics
        self.logger = get_logger("conditional_container.rule_set_evaluator")

    def decide(self, rules: Sequence[Rule], profile: ProfileSource,
               conditional: bool = True,
               diagnostic: Optional[DiagnosticSink] = None) -> bool:
        """Return whether the container is visible."""
        return self.evaluate(rules, profile, conditional, diagnostic).visible

    def evaluate(self, rules: Sequence[Rule], profile: ProfileSource,
                 conditional: bool = True,
                 diagnostic: Optional[DiagnosticSink] = None) -> DecisionResult:
        """Evaluate rules in author order and explain the decision."""
        start_time = time.time()

        if not conditional:
            return DecisionResult(visible=True, reason="Conditional mode disabled")

        try:
            resolver = AttributeResolver(profile)

            if not resolver.is_authenticated:
                self._report(diagnostic, USER_NOT_LOGGED_IN, reason="unauthenticated")
                return self._result(start_time, False, "User is not logged in")

            if not rules:
                return self._result(start_time, False, "No conditions configured")

            skipped = []
            for index, rule in enumerate(rules):
                if not resolver.has(rule.user_key):
                    skipped.append(rule.user_key)
                    self._report(diagnostic, missing_key_message(rule.user_key), reason="missing_attribute")
                    continue

                outcome = self.rule_evaluator.evaluate(rule, resolver.get(rule.user_key))
                if outcome.matched:
                    result = self._result(
                        start_time,
                        outcome.visible,
                        f"Condition {index + 1} on '{rule.user_key}' matched",
                        matched_rule=index,
                        skipped_keys=skipped
                    )
                    self.logger.debug(
                        "Rule set decided",
                        matched_rule=index,
                        user_key=rule.user_key,
                        logic=rule.logic.value,
                        visible=result.visible
                    )
                    return result

            return self._result(start_time, False, "No conditions matched", skipped_keys=skipped)

        except Exception as e:
            self.logger.error("Rule evaluation error", error=str(e), exc_info=True)
            return self._result(start_time, False, "Rule evaluation error")

    def _result(self, start_time: float, visible: bool, reason: str, **kwargs) -> DecisionResult:
        duration = time.time() - start_time
        if self.metrics:
            self.metrics.observe_histogram("rule_evaluation_duration_seconds", duration)
        return DecisionResult(
            visible=visible,
            reason=reason,
            evaluation_time_ms=duration * 1000,
            **kwargs
        )

    def _report(self, diagnostic: Optional[DiagnosticSink], message: str, reason: str):
        self.logger.info("Condition skipped", reason=reason, detail=message)
        if self.metrics:
            self.metrics.increment_counter("condition_skips_total", reason=reason)
        if diagnostic is not None:
            diagnostic(message)
