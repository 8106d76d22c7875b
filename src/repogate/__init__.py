"""
RepoGate: Risk-Governed Source-Control Tools for Agents

A stdio JSON-RPC tool server that lets an LLM-driven assistant operate
on a local git working copy and on a hosted forge's administrative API,
with every administrative call mediated by a safety engine.

Usage:
    from repogate.safety import SafetyEngine

    engine = SafetyEngine()
    check = engine.check_operation(
        "delete_webhook",
        {"owner": "acme", "repo": "demo", "hook_id": 42, "dry_run": False},
    )
    if not check.can_proceed:
        print(check.message)
"""

__version__ = "1.0.0"

__all__ = ["__version__"]
