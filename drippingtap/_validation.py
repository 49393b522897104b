"""Ordered precondition rules with success and failure responses.

Each rule pairs a check with what to say and do on either outcome, so a new
precondition is one more :class:`ValidationRule` rather than another branch
in the workflow. Handlers remediate in place (prompt, persist, install) or
raise a :class:`~drippingtap._errors.FatalPreconditionError`; they never
terminate the process.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Iterator, Sequence
from dataclasses import dataclass, field
from typing import Any

from drippingtap._operator import Reporter

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Valid:
    """Rule passed, optionally carrying data for the success handler."""

    payload: Any = None

    @property
    def valid(self) -> bool:
        return True


@dataclass(frozen=True, slots=True)
class Invalid:
    """Rule failed, optionally carrying data for the failure handler."""

    payload: Any = None

    @property
    def valid(self) -> bool:
        return False


RuleOutcome = Valid | Invalid
Handler = Callable[[Any], object]


@dataclass(frozen=True, slots=True)
class RuleResponse:
    """Message and optional side effect for one side of a rule."""

    message: str | None = None
    handler: Handler | None = None


@dataclass(frozen=True, slots=True)
class ValidationRule:
    """A named predicate over ambient state plus its two responses."""

    name: str
    check: Callable[[], object]
    on_valid: RuleResponse = field(default_factory=RuleResponse)
    on_invalid: RuleResponse = field(default_factory=RuleResponse)


def normalize_outcome(result: object) -> RuleOutcome:
    """Coerce a check result into :data:`RuleOutcome`.

    Examples
    --------
    >>> normalize_outcome(True)
    Valid(payload=None)
    >>> normalize_outcome("")
    Invalid(payload=None)
    >>> normalize_outcome(Invalid("droplets"))
    Invalid(payload='droplets')
    """

    if isinstance(result, Valid | Invalid):
        return result
    return Valid() if result else Invalid()


def evaluate_rule(rule: ValidationRule, reporter: Reporter) -> RuleOutcome:
    """Run *rule*, report its message and dispatch the matching handler.

    Examples
    --------
    >>> class Quiet:
    ...     def succeed(self, message): pass
    ...     def fail(self, message): pass
    >>> seen = []
    >>> rule = ValidationRule(
    ...     "listing",
    ...     check=lambda: Invalid("row"),
    ...     on_invalid=RuleResponse("conflict", seen.append),
    ... )
    >>> evaluate_rule(rule, Quiet()).valid, seen
    (False, ['row'])
    """

    outcome = normalize_outcome(rule.check())
    logger.debug("Rule %s evaluated to %s", rule.name, outcome)
    match outcome:
        case Valid(payload=payload):
            response = rule.on_valid
            if response.message:
                reporter.succeed(response.message)
        case Invalid(payload=payload):
            response = rule.on_invalid
            if response.message:
                reporter.fail(response.message)
    if response.handler is not None:
        response.handler(payload)
    return outcome


class ValidationEngine:
    """Evaluate rules in order, yielding each outcome to the caller.

    The caller decides between continuing, branching or aborting; stopping
    iteration early skips the remaining rules.
    """

    def __init__(self, rules: Iterable[ValidationRule], reporter: Reporter) -> None:
        self.rules: Sequence[ValidationRule] = tuple(rules)
        self.reporter = reporter

    def run(self) -> Iterator[tuple[ValidationRule, RuleOutcome]]:
        for rule in self.rules:
            yield rule, evaluate_rule(rule, self.reporter)


__all__ = [
    "Handler",
    "Invalid",
    "RuleOutcome",
    "RuleResponse",
    "Valid",
    "ValidationEngine",
    "ValidationRule",
    "evaluate_rule",
    "normalize_outcome",
]
