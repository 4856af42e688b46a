"""Tests for pattern-based node capability lookups."""

from flowdiff.services.node_capabilities import default_capabilities, normalize_node_type


class TestNormalizeNodeType:
    def test_prefixes(self):
        assert normalize_node_type("n8n-nodes-base.set") == "nodes-base.set"
        assert normalize_node_type("@n8n/n8n-nodes-langchain.agent") == "nodes-langchain.agent"
        assert normalize_node_type("nodes-base.set") == "nodes-base.set"


class TestPatternNodeCapabilities:
    def test_triggers(self):
        assert default_capabilities.is_trigger_type("n8n-nodes-base.webhook")
        assert default_capabilities.is_trigger_type("n8n-nodes-base.scheduleTrigger")
        assert default_capabilities.is_trigger_type("n8n-nodes-base.manualTrigger")
        assert default_capabilities.is_trigger_type("n8n-nodes-base.start")

    def test_respond_to_webhook_is_not_a_trigger(self):
        assert not default_capabilities.is_trigger_type("n8n-nodes-base.respondToWebhook")
        assert not default_capabilities.is_trigger_type("n8n-nodes-base.httpRequest")

    def test_sticky_notes_are_not_executable(self):
        assert default_capabilities.is_non_executable_type("n8n-nodes-base.stickyNote")
        assert not default_capabilities.is_non_executable_type("n8n-nodes-base.set")
