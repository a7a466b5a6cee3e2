"""
Policy Router
=============
Maps a classified failure to the next action.

Precedence (first rule wins):
    1. failure_class in routing.report_only    → report_only
    2. failure_class in routing.flake_workflow → flake_workflow
    3. failure_type  in routing.fix_attempt    → fix_attempt
    4. otherwise                               → escalate

Class rules run before the type rule, so a flaky test routes to the flake
workflow even though "test" is a fix-attempt type.
"""
from typing import Callable, List, Tuple

from greenlit.core.config import RoutingConfig
from greenlit.core.constants import RoutingDecision

_Predicate = Callable[[str, str, RoutingConfig], bool]

ROUTING_RULES: List[Tuple[_Predicate, RoutingDecision]] = [
    (lambda failure_class, failure_type, routing: failure_class in routing.report_only, "report_only"),
    (lambda failure_class, failure_type, routing: failure_class in routing.flake_workflow, "flake_workflow"),
    (lambda failure_class, failure_type, routing: failure_type in routing.fix_attempt, "fix_attempt"),
]


def route_failure(failure_class: str, failure_type: str, routing: RoutingConfig) -> RoutingDecision:
    """Return the routing decision for a classification. Pure."""
    for predicate, decision in ROUTING_RULES:
        if predicate(failure_class, failure_type, routing):
            return decision
    return "escalate"
