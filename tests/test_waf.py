"""Tests for the web application firewall."""

import json
import re
from unittest.mock import patch

import pytest

from chatwidget.app.services import waf as waf_module
from chatwidget.app.services.waf import WAFRule, WAFService, WAFVerdict, default_rules
from chatwidget.app.services.waf.service import build_inspection_text

JSON_HEADERS = {"Content-Type": "application/json"}


def _body(text: str) -> str:
    return json.dumps({"content": text})


@pytest.fixture
def waf():
    return WAFService()


class TestDefaultRules:
    """Tests for the shipped rule set."""

    def test_rule_ids_unique(self):
        ids = [rule.id for rule in default_rules()]

        assert len(ids) == len(set(ids))

    def test_all_rules_compiled_case_insensitive(self):
        for rule in default_rules():
            assert isinstance(rule.pattern, re.Pattern)
            assert rule.pattern.flags & re.IGNORECASE

    def test_sql_injection_blocked(self, waf):
        verdict = waf.check_request(
            "POST", "/ai/query", JSON_HEADERS, _body("SELECT * FROM users WHERE id = 1 OR 1=1")
        )

        assert verdict.blocked is True
        assert "SQL Injection" in verdict.rule.name
        assert verdict.rule.severity == "critical"

    def test_xss_blocked(self, waf):
        verdict = waf.check_request("POST", "/ai/query", JSON_HEADERS, _body("<script>alert('xss')</script>"))

        assert verdict.blocked is True
        assert "XSS" in verdict.rule.name

    def test_path_traversal_blocked(self, waf):
        verdict = waf.check_request("GET", "/../../../etc/passwd", {})

        assert verdict.blocked is True
        assert "Path Traversal" in verdict.rule.name

    def test_command_injection_blocked(self, waf):
        verdict = waf.check_request("POST", "/ai/query", JSON_HEADERS, _body("test; rm -rf /"))

        assert verdict.blocked is True
        assert "Command Injection" in verdict.rule.name

    def test_system_command_challenged(self, waf):
        verdict = waf.check_request("POST", "/ai/query", JSON_HEADERS, _body("ls -la"))

        assert verdict.blocked is False
        assert verdict.challenge is True
        assert verdict.reason == "Challenge required by WAF rule: Command Injection - System Commands"

    def test_normal_dutch_message_passes(self, waf):
        verdict = waf.check_request(
            "POST", "/ai/query", JSON_HEADERS, _body("Hallo, ik heb een vraag over jullie diensten")
        )

        assert verdict.blocked is False
        assert verdict.challenge is False
        assert verdict.rule is None

    def test_nosql_operator_blocked(self, waf):
        verdict = waf.check_request("POST", "/ai/query", {}, '{"user": {"$ne": null}}')

        assert verdict.blocked is True
        assert verdict.rule.id == "nosql-injection-1"

    def test_internal_address_challenged(self, waf):
        verdict = waf.check_request("POST", "/ai/query", {}, "haal 192.168.1.1 op")

        assert verdict.challenge is True
        assert verdict.rule.id == "ssrf-1"

    def test_long_content_challenged(self, waf):
        verdict = waf.check_request("POST", "/ai/query", {}, "a" * 10_001)

        assert verdict.challenge is True
        assert verdict.rule.id == "suspicious-1"

    def test_control_characters_challenged(self, waf):
        verdict = waf.check_request("POST", "/ai/query", {}, "hallo\x07wereld")

        assert verdict.challenge is True
        assert verdict.rule.id == "suspicious-2"

    def test_accented_text_passes(self, waf):
        verdict = waf.check_request("POST", "/ai/query", {}, "Ik wil graag een café reserveren, geen idee hoe")

        assert verdict.blocked is False
        assert verdict.challenge is False

    @pytest.mark.parametrize("text", [
        "Hallo!",
        "Wat kost het pakket (incl. btw)?",
        "Mijn bestelling #4521 is niet aangekomen",
        "Ik wil 10.000 euro uitgeven",
        "Tom & Jerry dvd, nog op voorraad?",
        "Ik heb een vraag; kunnen jullie helpen?",
    ])
    def test_everyday_punctuation_passes(self, waf, text):
        verdict = waf.check_request("POST", "/api/ai/query", {}, text)

        assert verdict == WAFVerdict(blocked=False)

    @pytest.mark.parametrize("text,rule_id", [
        ("admin' -- ", "sql-injection-2"),
        ("1 /* comment */", "sql-injection-2"),
        ("foo && cat /etc/passwd", "command-injection-1"),
        ("x | sh", "command-injection-1"),
        ("echo $(id)", "command-injection-1"),
        ("*)(uid=*", "ldap-injection-1"),
        ("(|(user=admin)(cn=x))", "ldap-injection-1"),
        ("lees http://10.0.0.5/admin", "ssrf-1"),
        ("172.16.4.2", "ssrf-1"),
    ])
    def test_tightened_rules_still_match(self, waf, text, rule_id):
        verdict = waf.check_request("POST", "/api/ai/query", {}, text)

        assert verdict.rule.id == rule_id

    def test_headers_are_inspected(self, waf):
        verdict = waf.check_request("GET", "/", {"X-Forwarded-Host": "localhost"})

        assert verdict.challenge is True
        assert verdict.rule.id == "ssrf-1"


class TestEvaluation:
    """Tests for rule ordering, actions and toggles."""

    def test_first_match_wins(self):
        first = WAFRule.from_dict({"id": "a", "name": "A", "pattern": "foo", "action": "challenge"})
        second = WAFRule.from_dict({"id": "b", "name": "B", "pattern": "foo", "action": "block"})
        waf = WAFService(rules=[first, second])

        verdict = waf.check_request("POST", "/x", {}, "foo")

        assert verdict.challenge is True
        assert verdict.blocked is False
        assert verdict.rule.id == "a"

    def test_log_action_passes_with_rule(self):
        rule = WAFRule.from_dict({"id": "audit", "name": "Audit", "pattern": "refund", "action": "log"})
        waf = WAFService(rules=[rule])

        verdict = waf.check_request("POST", "/x", {}, "I want a REFUND")

        assert verdict.blocked is False
        assert verdict.challenge is False
        assert verdict.rule.id == "audit"
        assert waf.get_stats()["hits"] == {"audit": 1}

    def test_disabled_waf_passes_everything(self):
        waf = WAFService(enabled=False)

        verdict = waf.check_request("POST", "/x", {}, "<script>alert(1)</script>")

        assert verdict == WAFVerdict(blocked=False)

    def test_match_is_logged(self, waf):
        with patch.object(waf_module.service.logger, "warning") as warning:
            waf.check_request("GET", "/../etc/passwd", {})

        warning.assert_called_once()
        assert warning.call_args.kwargs["extra"]["rule_id"] == "path-traversal-1"

    def test_inspection_text_is_lowercased(self):
        text = build_inspection_text("POST", "/API", {"X-Test": "Value"}, "BODY")

        assert text == 'post /api {"x-test":"value"} body'


class TestRuleManagement:
    """Tests for adding, removing and loading rules."""

    def test_add_rule(self, waf):
        before = len(waf.get_rules())
        waf.add_rule(WAFRule.from_dict({"id": "custom", "name": "Custom", "pattern": "forbidden"}))

        assert len(waf.get_rules()) == before + 1
        assert waf.check_request("POST", "/x", {}, "this is forbidden").blocked is True

    def test_add_duplicate_rule_rejected(self, waf):
        with pytest.raises(ValueError, match="already exists"):
            waf.add_rule(WAFRule.from_dict({"id": "xss-1", "name": "Dup", "pattern": "x"}))

    def test_remove_rule(self, waf):
        assert waf.remove_rule("path-traversal-1") is True
        assert waf.remove_rule("path-traversal-1") is False
        assert all(rule.id != "path-traversal-1" for rule in waf.get_rules())

    def test_get_rules_returns_copy(self, waf):
        rules = waf.get_rules()
        rules.clear()

        assert len(waf.get_rules()) == len(default_rules())

    def test_stats(self, waf):
        waf.check_request("GET", "/../x", {})
        waf.check_request("GET", "/../y", {})

        stats = waf.get_stats()

        assert stats["totalRules"] == len(default_rules())
        assert stats["criticalRules"] + stats["highRules"] + stats["mediumRules"] + stats["lowRules"] == stats["totalRules"]
        assert stats["hits"]["path-traversal-1"] == 2

        waf.reset_stats()
        assert waf.get_stats()["hits"] == {}

    def test_load_rules_file(self, waf, tmp_path):
        rules_file = tmp_path / "rules.json"
        rules_file.write_text(json.dumps([
            {"id": "competitor", "name": "Competitor", "pattern": "acme corp", "action": "log", "severity": "low"},
        ]))

        loaded = waf.load_rules_file(rules_file)

        assert loaded == 1
        assert waf.get_rules()[-1].id == "competitor"

    def test_load_rules_file_rejects_non_list(self, waf, tmp_path):
        rules_file = tmp_path / "rules.json"
        rules_file.write_text('{"id": "x"}')

        with pytest.raises(ValueError, match="JSON list"):
            waf.load_rules_file(rules_file)


class TestRuleParsing:
    """Tests for WAFRule.from_dict validation."""

    def test_defaults(self):
        rule = WAFRule.from_dict({"id": "r", "name": "", "pattern": "x"})

        assert rule.name == "r"
        assert rule.action == "block"
        assert rule.severity == "medium"

    @pytest.mark.parametrize("data,message", [
        ({"name": "n", "pattern": "x"}, "missing field"),
        ({"id": " ", "name": "n", "pattern": "x"}, "cannot be empty"),
        ({"id": "r", "name": "n", "pattern": "x", "action": "drop"}, "Invalid WAF action"),
        ({"id": "r", "name": "n", "pattern": "x", "severity": "urgent"}, "Invalid WAF severity"),
        ({"id": "r", "name": "n", "pattern": "(unclosed"}, "Invalid regex"),
    ])
    def test_invalid_rules(self, data, message):
        with pytest.raises(ValueError, match=message):
            WAFRule.from_dict(data)

    def test_to_dict(self):
        rule = WAFRule.from_dict({"id": "r", "name": "R", "pattern": "a+b", "severity": "low", "description": "d"})

        assert rule.to_dict() == {
            "id": "r",
            "name": "R",
            "pattern": "a+b",
            "action": "block",
            "severity": "low",
            "description": "d",
        }
