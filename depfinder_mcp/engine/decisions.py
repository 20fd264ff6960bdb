"""Decision providers: who approves or rejects newly discovered libraries.

A provider receives the names pending after a traversal pass and returns a
decision for some or all of them. Names it leaves out stay undecided; when a
round decides nothing the fixpoint loop stops instead of waiting.
"""

from __future__ import annotations

import fnmatch
import sys
from pathlib import Path
from typing import Mapping, Protocol

import click

from depfinder_mcp.core import json_utils as json
from depfinder_mcp.core.config import DECISION_POLICIES, Config, get_config
from depfinder_mcp.core.exceptions import ValidationError
from depfinder_mcp.core.logging_config import get_logger
from depfinder_mcp.engine.models import ApprovalState

logger = get_logger(__name__)

Decisions = dict[str, ApprovalState]


class DecisionProvider(Protocol):
    def decide(
        self,
        pending: set[str],
        instances: Mapping[str, set[Path]] | None = None,
    ) -> Decisions: ...


class PolicyDecisionProvider:
    """Apply one fixed policy to every pending name."""

    def __init__(self, policy: str = "defer"):
        if policy not in DECISION_POLICIES:
            raise ValidationError(
                f"Unknown decision policy '{policy}'",
                details={"allowed": list(DECISION_POLICIES)},
            )
        self.policy = policy

    def decide(self, pending, instances=None) -> Decisions:
        if self.policy == "approve":
            return {name: ApprovalState.APPROVED for name in pending}
        if self.policy == "reject":
            return {name: ApprovalState.REJECTED for name in pending}
        return {}


class RuleFileDecisionProvider:
    """
    Decide from glob rules in a JSON file::

        {"approve": ["lib*.so"], "reject": ["libc.so", "libm.so"], "default": "defer"}

    Reject rules win over approve rules; unmatched names get ``default``.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        try:
            rules = json.loads(self.path.read_bytes())
        except (OSError, json.JSONDecodeError) as e:
            raise ValidationError(
                f"Cannot load decision rules from {self.path}: {e}",
                details={"path": str(self.path)},
            ) from e
        if not isinstance(rules, dict):
            raise ValidationError(f"Decision rules in {self.path} must be a JSON object")

        self.approve = [str(p) for p in rules.get("approve", [])]
        self.reject = [str(p) for p in rules.get("reject", [])]
        self.default = PolicyDecisionProvider(str(rules.get("default", "defer")))

    def decide(self, pending, instances=None) -> Decisions:
        decisions: Decisions = {}
        leftover: set[str] = set()
        for name in pending:
            if any(fnmatch.fnmatchcase(name, pattern) for pattern in self.reject):
                decisions[name] = ApprovalState.REJECTED
            elif any(fnmatch.fnmatchcase(name, pattern) for pattern in self.approve):
                decisions[name] = ApprovalState.APPROVED
            else:
                leftover.add(name)
        decisions.update(self.default.decide(leftover))
        return decisions


def _parse_selection(answer: str, count: int) -> set[int] | None:
    """Parse '1, 3,4' into zero-based indexes; None when malformed."""
    selected: set[int] = set()
    for token in answer.replace(" ", "").split(","):
        if not token:
            continue
        if not token.isdigit() or not 1 <= int(token) <= count:
            return None
        selected.add(int(token) - 1)
    return selected


class InteractiveDecisionProvider:
    """Terminal checklist: everything is approved unless picked for rejection."""

    def decide(self, pending, instances=None) -> Decisions:
        names = sorted(pending)
        if not names:
            return {}
        instances = instances or {}

        while True:
            click.echo()
            click.secho("Libraries awaiting a decision:", bold=True)
            for number, name in enumerate(names, 1):
                count = len(instances.get(name, ()))
                suffix = f"  ({count} instances found)" if count > 1 else ""
                click.echo(f"  {number:>3}) {name}{suffix}")

            answer = click.prompt(
                "Numbers to reject (comma-separated, empty approves all, q defers all)",
                default="",
                show_default=False,
            ).strip()
            if answer.lower() == "q":
                return {}

            rejected = _parse_selection(answer, len(names))
            if rejected is None:
                click.secho("Invalid selection, try again.", fg="red")
                continue

            decisions = {
                name: ApprovalState.REJECTED if index in rejected else ApprovalState.APPROVED
                for index, name in enumerate(names)
            }
            if click.confirm(
                f"Approve {len(names) - len(rejected)}, reject {len(rejected)}?", default=True
            ):
                return decisions


def select_decision_provider(
    config: Config | None = None,
    interactive: bool = False,
    policy: str | None = None,
    decision_file: Path | None = None,
) -> DecisionProvider:
    """
    Choose a provider: the terminal when asked for and stdin is a TTY, then a
    rule file, then the fixed policy (``defer`` unless configured otherwise).
    """
    config = config or get_config()
    if interactive:
        if sys.stdin.isatty():
            return InteractiveDecisionProvider()
        logger.warning("No interactive terminal; falling back to the non-interactive decision policy")

    rule_file = decision_file or config.decision_file
    if rule_file is not None:
        logger.info(f"Using decision rules from {rule_file}")
        return RuleFileDecisionProvider(rule_file)

    chosen = policy or config.decision_policy
    logger.info(f"Using non-interactive decision policy '{chosen}'")
    return PolicyDecisionProvider(chosen)
