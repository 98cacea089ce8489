"""Alert rule evaluation: condition evaluator, metric extraction, parsing."""

from vigil.rules.defaults import default_rules
from vigil.rules.evaluator import EQUALS_EPSILON, evaluate
from vigil.rules.extraction import extract_metric
from vigil.rules.loader import load_rules_file, parse_rule, parse_rules, rule_to_dict

__all__ = [
    "EQUALS_EPSILON",
    "default_rules",
    "evaluate",
    "extract_metric",
    "load_rules_file",
    "parse_rule",
    "parse_rules",
    "rule_to_dict",
]
