"""WAF data models."""

import re
from dataclasses import dataclass
from typing import Any, Dict, Literal, Optional, get_args

WAFAction = Literal["block", "log", "challenge"]
WAFSeverity = Literal["low", "medium", "high", "critical"]

ACTIONS = get_args(WAFAction)
SEVERITIES = get_args(WAFSeverity)


@dataclass(frozen=True)
class WAFRule:
    """One firewall rule: a compiled pattern plus what to do on a match."""
    id: str
    name: str
    pattern: re.Pattern
    action: WAFAction
    severity: WAFSeverity
    description: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WAFRule":
        """Build a rule from a plain mapping, compiling its pattern.

        Raises:
            ValueError: If a field is missing, unknown or the regex is invalid
        """
        if not isinstance(data, dict):
            raise ValueError("WAF rule must be an object")
        try:
            rule_id = str(data["id"]).strip()
            name = str(data["name"]).strip()
            raw_pattern = str(data["pattern"])
        except KeyError as e:
            raise ValueError(f"WAF rule is missing field {e.args[0]!r}") from e

        if not rule_id:
            raise ValueError("WAF rule id cannot be empty")

        action = data.get("action", "block")
        if action not in ACTIONS:
            raise ValueError(f"Invalid WAF action {action!r} for rule {rule_id}")
        severity = data.get("severity", "medium")
        if severity not in SEVERITIES:
            raise ValueError(f"Invalid WAF severity {severity!r} for rule {rule_id}")

        try:
            pattern = re.compile(raw_pattern, re.IGNORECASE)
        except re.error as e:
            raise ValueError(f"Invalid regex pattern for rule {rule_id}: {e}") from e

        return cls(
            id=rule_id,
            name=name or rule_id,
            pattern=pattern,
            action=action,
            severity=severity,
            description=str(data.get("description", "")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "pattern": self.pattern.pattern,
            "action": self.action,
            "severity": self.severity,
            "description": self.description,
        }


@dataclass
class WAFVerdict:
    """Outcome of checking one request against the rule set."""
    blocked: bool
    rule: Optional[WAFRule] = None
    reason: Optional[str] = None
    challenge: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Render the boundary shape, omitting unset fields."""
        data: Dict[str, Any] = {"blocked": self.blocked}
        if self.reason is not None:
            data["reason"] = self.reason
        if self.challenge:
            data["challenge"] = True
        if self.rule is not None:
            data["ruleId"] = self.rule.id
            data["severity"] = self.rule.severity
        return data
