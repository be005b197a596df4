"""WAFService main class."""

from __future__ import annotations

import json
import threading
from collections import Counter
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from chatwidget.app.core.logging import get_logger
from chatwidget.app.services.waf.models import SEVERITIES, WAFRule, WAFVerdict
from chatwidget.app.services.waf.rules import default_rules

logger = get_logger(__name__)


def build_inspection_text(
    method: str,
    path: str,
    headers: Optional[Dict[str, Any]] = None,
    body: Optional[str] = None,
) -> str:
    """Concatenate the request parts the rules are matched against."""
    headers_json = json.dumps(headers or {}, separators=(",", ":"), ensure_ascii=False)
    return f"{method} {path} {headers_json} {body or ''}".lower()


class WAFService:
    """Pattern-matching web application firewall.

    Rules are checked in order and the first match wins:
    - ``block``: the request is rejected
    - ``challenge``: the caller should demand a solved captcha
    - ``log``: the request passes, the hit is recorded
    """

    def __init__(self, rules: Optional[Iterable[WAFRule]] = None, enabled: bool = True):
        self.enabled = enabled
        self._rules: List[WAFRule] = list(rules) if rules is not None else default_rules()
        self._hits: Counter[str] = Counter()
        self._lock = threading.Lock()

    def check_request(
        self,
        method: str,
        path: str,
        headers: Optional[Dict[str, Any]] = None,
        body: Optional[str] = None,
    ) -> WAFVerdict:
        """Evaluate one request against the rule set.

        Args:
            method: HTTP method
            path: Request path
            headers: Request headers to include in the inspected text
            body: Raw request body

        Returns:
            WAFVerdict for the first matching rule, or a clean pass
        """
        if not self.enabled:
            return WAFVerdict(blocked=False)

        text = build_inspection_text(method, path, headers, body)
        with self._lock:
            rules = list(self._rules)

        for rule in rules:
            if not rule.pattern.search(text):
                continue

            with self._lock:
                self._hits[rule.id] += 1
            logger.warning(
                f"WAF rule triggered: {rule.name} ({rule.severity}) - {rule.description}",
                extra={"rule_id": rule.id, "path": path, "method": method},
            )

            if rule.action == "block":
                return WAFVerdict(
                    blocked=True,
                    rule=rule,
                    reason=f"Blocked by WAF rule: {rule.name}",
                )
            if rule.action == "challenge":
                return WAFVerdict(
                    blocked=False,
                    rule=rule,
                    challenge=True,
                    reason=f"Challenge required by WAF rule: {rule.name}",
                )
            return WAFVerdict(blocked=False, rule=rule)

        return WAFVerdict(blocked=False)

    def add_rule(self, rule: WAFRule) -> None:
        """Append a rule at the end of the evaluation order.

        Raises:
            ValueError: If a rule with the same id already exists
        """
        with self._lock:
            if any(existing.id == rule.id for existing in self._rules):
                raise ValueError(f"WAF rule already exists: {rule.id}")
            self._rules.append(rule)
        logger.info(f"WAF rule added: {rule.id}", extra={"rule_id": rule.id})

    def remove_rule(self, rule_id: str) -> bool:
        """Remove a rule by id. Returns True if a rule was removed."""
        with self._lock:
            before = len(self._rules)
            self._rules = [rule for rule in self._rules if rule.id != rule_id]
            removed = len(self._rules) != before
        if removed:
            logger.info(f"WAF rule removed: {rule_id}", extra={"rule_id": rule_id})
        return removed

    def get_rules(self) -> List[WAFRule]:
        with self._lock:
            return list(self._rules)

    def get_stats(self) -> Dict[str, Any]:
        """Rule counts by severity plus per-rule hit counters."""
        with self._lock:
            by_severity = Counter(rule.severity for rule in self._rules)
            stats: Dict[str, Any] = {"totalRules": len(self._rules)}
            for severity in reversed(SEVERITIES):
                stats[f"{severity}Rules"] = by_severity.get(severity, 0)
            stats["hits"] = dict(self._hits)
            return stats

    def load_rules_file(self, path: str | Path) -> int:
        """Append rules from a JSON file holding a list of rule objects.

        Returns:
            Number of rules loaded

        Raises:
            ValueError: If the file is not a JSON list or a rule is invalid
        """
        try:
            data = json.loads(Path(path).read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid WAF rules file {path}: {e}") from e
        if not isinstance(data, list):
            raise ValueError(f"WAF rules file {path} must contain a JSON list")

        rules = [WAFRule.from_dict(item) for item in data]
        for rule in rules:
            self.add_rule(rule)
        logger.info(f"Loaded {len(rules)} WAF rules from {path}")
        return len(rules)

    def reset_stats(self) -> None:
        with self._lock:
            self._hits.clear()
