"""Unit tests for the ordered validation engine."""

from __future__ import annotations

from conftest import ScriptedOperator

from drippingtap._validation import (
    Invalid,
    RuleResponse,
    Valid,
    ValidationEngine,
    ValidationRule,
    evaluate_rule,
    normalize_outcome,
)


def test_normalize_outcome_coerces_truthiness() -> None:
    assert normalize_outcome(True) == Valid(), "True should be a payload-free Valid"
    assert normalize_outcome("ssh") == Valid(), "Truthy values should be Valid"
    assert normalize_outcome(None) == Invalid(), "None should be a payload-free Invalid"
    assert normalize_outcome("") == Invalid(), "Empty string should be Invalid"


def test_normalize_outcome_keeps_tagged_results() -> None:
    outcome = Invalid(["doctl"])
    assert normalize_outcome(outcome) is outcome


def test_evaluate_rule_routes_payload_to_failure_handler() -> None:
    reporter = ScriptedOperator()
    seen: list[object] = []
    rule = ValidationRule(
        "conflicts",
        check=lambda: Invalid("101 redm 2048 50 1 active"),
        on_valid=RuleResponse("no conflicts", seen.append),
        on_invalid=RuleResponse("conflicts", seen.append),
    )

    outcome = evaluate_rule(rule, reporter)

    assert outcome.valid is False
    assert seen == ["101 redm 2048 50 1 active"], "Failure handler should get the payload"
    assert reporter.messages("fail") == ["conflicts"]
    assert reporter.messages("succeed") == []


def test_evaluate_rule_routes_payload_to_success_handler() -> None:
    reporter = ScriptedOperator()
    seen: list[object] = []
    rule = ValidationRule(
        "snapshots",
        check=lambda: Valid("listing"),
        on_valid=RuleResponse("found", seen.append),
    )

    assert evaluate_rule(rule, reporter).valid is True
    assert seen == ["listing"]
    assert reporter.messages("succeed") == ["found"]


def test_evaluate_rule_plain_bool_passes_none_payload() -> None:
    seen: list[object] = []
    rule = ValidationRule(
        "auth",
        check=lambda: False,
        on_invalid=RuleResponse(None, seen.append),
    )

    evaluate_rule(rule, ScriptedOperator())

    assert seen == [None], "Boolean checks should hand the handler no payload"


def test_engine_runs_rules_in_order_and_yields_outcomes() -> None:
    calls: list[str] = []

    def check(name: str, result: bool):
        def _check() -> bool:
            calls.append(name)
            return result

        return _check

    rules = [
        ValidationRule("first", check=check("first", True)),
        ValidationRule("second", check=check("second", False)),
        ValidationRule("third", check=check("third", True)),
    ]

    results = [(rule.name, outcome.valid) for rule, outcome in ValidationEngine(rules, ScriptedOperator()).run()]

    assert calls == ["first", "second", "third"], "Rules should run in declaration order"
    assert results == [("first", True), ("second", False), ("third", True)]


def test_engine_stops_when_caller_stops_iterating() -> None:
    calls: list[str] = []
    rules = [
        ValidationRule("first", check=lambda: calls.append("first") or True),
        ValidationRule("second", check=lambda: calls.append("second") or True),
    ]

    runner = ValidationEngine(rules, ScriptedOperator()).run()
    next(runner)

    assert calls == ["first"], "Later rules should not run before they are requested"
