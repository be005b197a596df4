"""Built-in WAF rule set.

Rules are evaluated in list order against the lower-cased request text;
the first match wins.
"""

from typing import Any, Dict, List

from chatwidget.app.services.waf.models import WAFRule

DEFAULT_RULE_DEFINITIONS: List[Dict[str, Any]] = [
    # SQL injection
    {
        "id": "sql-injection-1",
        "name": "SQL Injection - Basic",
        "pattern": r"(\b(union|select|insert|update|delete|drop|create|alter|exec|execute)\b.*\b(from|into|where|set|table|database)\b)",
        "action": "block",
        "severity": "critical",
        "description": "Basic SQL injection attempt detected",
    },
    {
        "id": "sql-injection-2",
        "name": "SQL Injection - Comments",
        "pattern": r"(['`;]\s*(--|#)|/\*|\*/)",
        "action": "block",
        "severity": "high",
        "description": "SQL comment injection attempt",
    },
    {
        "id": "sql-injection-3",
        "name": "SQL Injection - Quotes",
        "pattern": r"('|\"|`).*(\bor\b|\band\b).*('|\"|`)",
        "action": "block",
        "severity": "high",
        "description": "SQL quote injection attempt",
    },
    {
        "id": "sql-injection-4",
        "name": "SQL Injection - Tautology",
        "pattern": r"('|\"|`)\s*(or|and)\s+[\w'\"`]+\s*=\s*[\w'\"`]+",
        "action": "block",
        "severity": "high",
        "description": "Quoted boolean tautology such as ' or 1=1",
    },
    # Cross-site scripting
    {
        "id": "xss-1",
        "name": "XSS - Script Tags",
        "pattern": r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>",
        "action": "block",
        "severity": "critical",
        "description": "Script tag injection attempt",
    },
    {
        "id": "xss-2",
        "name": "XSS - Event Handlers",
        "pattern": r"on\w+\s*=",
        "action": "block",
        "severity": "high",
        "description": "Event handler injection attempt",
    },
    {
        "id": "xss-3",
        "name": "XSS - JavaScript Protocol",
        "pattern": r"javascript\s*:",
        "action": "block",
        "severity": "high",
        "description": "JavaScript protocol injection attempt",
    },
    # Path traversal
    {
        "id": "path-traversal-1",
        "name": "Path Traversal - Basic",
        "pattern": r"\.\./",
        "action": "block",
        "severity": "high",
        "description": "Path traversal attempt detected",
    },
    {
        "id": "path-traversal-2",
        "name": "Path Traversal - Encoded",
        "pattern": r"%2e%2e%2f|%2e%2e%5c",
        "action": "block",
        "severity": "high",
        "description": "Encoded path traversal attempt",
    },
    # Command injection
    {
        "id": "command-injection-1",
        "name": "Command Injection - Basic",
        # Shell operators followed by a command; a lone "&" or ";" in prose passes
        "pattern": r"((;|&&|\|\|?)\s*(rm|cat|ls|sh|bash|nc|wget|curl|chmod|echo|python|perl|whoami|id|uname)\b|\$\(|`[^`]*`)",
        "action": "block",
        "severity": "critical",
        "description": "Command injection attempt detected",
    },
    {
        "id": "command-injection-2",
        "name": "Command Injection - System Commands",
        "pattern": r"\b(cat|ls|pwd|whoami|id|uname|ps|netstat|ifconfig|ping|curl|wget)\b",
        "action": "challenge",
        "severity": "medium",
        "description": "System command detected",
    },
    # File inclusion
    {
        "id": "file-inclusion-1",
        "name": "File Inclusion - Basic",
        "pattern": r"(include|require|include_once|require_once)\s*\(",
        "action": "block",
        "severity": "high",
        "description": "File inclusion attempt detected",
    },
    # LDAP / NoSQL injection
    {
        "id": "ldap-injection-1",
        "name": "LDAP Injection - Basic",
        # Filter syntax such as (uid=*) or *)(|(, not bare punctuation
        "pattern": r"(\(\s*[\w-]+\s*[~<>]?=|\*\)\s*\(|\(\s*[|&!]\s*\()",
        "action": "challenge",
        "severity": "medium",
        "description": "LDAP injection pattern detected",
    },
    {
        "id": "nosql-injection-1",
        "name": "NoSQL Injection - Basic",
        "pattern": r"\$where|\$ne|\$gt|\$lt|\$regex",
        "action": "block",
        "severity": "high",
        "description": "NoSQL injection attempt detected",
    },
    # Server-side request forgery
    {
        "id": "ssrf-1",
        "name": "SSRF - Internal IPs",
        "pattern": r"\b(127\.0\.0\.1|localhost|0\.0\.0\.0|10(\.\d{1,3}){3}|172\.(1[6-9]|2[0-9]|3[01])(\.\d{1,3}){2}|192\.168(\.\d{1,3}){2})\b",
        "action": "challenge",
        "severity": "medium",
        "description": "Internal IP access attempt",
    },
    # Heuristics
    {
        "id": "suspicious-1",
        "name": "Suspicious - Long Content",
        "pattern": r".{10000,}",
        "action": "challenge",
        "severity": "low",
        "description": "Unusually long content detected",
    },
    {
        # C0 controls and C1 range only; Latin-1 letters such as "ë" pass
        "id": "suspicious-2",
        "name": "Suspicious - Binary Data",
        "pattern": r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f]",
        "action": "challenge",
        "severity": "medium",
        "description": "Binary data detected in text field",
    },
]


def default_rules() -> List[WAFRule]:
    """Compile the built-in rule set in evaluation order."""
    return [WAFRule.from_dict(definition) for definition in DEFAULT_RULE_DEFINITIONS]
