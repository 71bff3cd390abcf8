"""Tests for definition, rule and node parameter models."""

import pytest
from pydantic import ValidationError

from crm_workflows.constants import normalize_node_type
from crm_workflows.core.exceptions import DefinitionError
from crm_workflows.models.automation import AutomationRule
from crm_workflows.models.nodes import (
    BaseNodeParams,
    DelayParams,
    FetchDataParams,
    SendEmailParams,
    validate_node_params,
)
from crm_workflows.models.workflow import WorkflowDefinition, WorkflowEdge


@pytest.mark.unit
class TestWorkflowDefinition:

    def test_event_trigger_requires_event(self):
        with pytest.raises(ValidationError):
            WorkflowDefinition.model_validate({"id": "wf", "trigger_type": "event", "trigger_config": {}})

    def test_manual_trigger_needs_no_event(self):
        definition = WorkflowDefinition.model_validate({"id": "wf", "trigger_type": "manual"})
        assert definition.flow_definition.nodes == []
        assert definition.error_handling == "stop"

    def test_unknown_policy_rejected(self):
        with pytest.raises(ValidationError):
            WorkflowDefinition.model_validate({"id": "wf", "trigger_type": "manual",
                                               "error_handling": "explode"})

    def test_from_record_ignores_storage_columns(self):
        definition = WorkflowDefinition.from_record({
            "id": "wf",
            "name": "Welcome",
            "trigger_type": "event",
            "trigger_config": {"event": "lead_created", "conditions": [
                {"field": "source", "value": "web"},
            ]},
            "flow_definition": None,
            "error_handling": None,
            "created_at": "2024-01-01T00:00:00+00:00",
            "created_by": "user-1",
        })
        assert definition.trigger_config.event == "lead_created"
        assert definition.trigger_config.conditions[0].operator == "equals"
        assert definition.error_handling == "stop"

    def test_from_record_raises_definition_error(self):
        with pytest.raises(DefinitionError):
            WorkflowDefinition.from_record({"id": "wf", "trigger_type": "event"})

    def test_nodes_without_type_load(self):
        definition = WorkflowDefinition.model_validate({
            "id": "wf",
            "trigger_type": "manual",
            "flow_definition": {"nodes": [{"id": "1", "type": None}, {"id": "2"}]},
        })
        assert [n.type for n in definition.flow_definition.nodes] == [None, None]

    def test_edge_source_handle_alias(self):
        edge = WorkflowEdge.model_validate({"source": "1", "target": "2", "sourceHandle": "true"})
        assert edge.source_handle == "true"


@pytest.mark.unit
class TestNodeParams:

    def test_discriminated_union_selects_model(self):
        params = validate_node_params("send_email", {"to": "a@b.co", "subject": "Hi"})
        assert isinstance(params, SendEmailParams)
        assert params.body == ""

    def test_message_alias_for_body(self):
        params = validate_node_params("send_email", {"message": "Hello"})
        assert params.body == "Hello"

    def test_unknown_type_falls_back(self):
        params = validate_node_params("webhook_call", {"url": "http://x"})
        assert type(params) is BaseNodeParams
        assert params.url == "http://x"

    def test_invalid_fetch_operator_rejected(self):
        with pytest.raises(ValidationError):
            validate_node_params("fetch_data", {"table": "leads",
                                                "filters": [{"field": "a", "operator": "contains"}]})

    def test_fetch_filters_parsed(self):
        params = validate_node_params("fetch_data", {"table": "leads",
                                                     "filters": [{"field": "status", "value": "new"}]})
        assert isinstance(params, FetchDataParams)
        assert params.filters[0].operator == "equals"

    def test_delay_defaults(self):
        params = validate_node_params("delay", {})
        assert isinstance(params, DelayParams)
        assert (params.delay_value, params.delay_unit) == (1, "minutes")

    @pytest.mark.parametrize("node_type,params,field,expected", [
        ("condition", {"operator": None}, "operator", "equals"),
        ("delay", {"delay_unit": None, "delayValue": None}, "delay_unit", "minutes"),
        ("delay", {"delay_value": None}, "delay_value", 1),
        ("create_task", {"priority": None}, "priority", "medium"),
        ("create_task", {"dueOffsetDays": None}, "due_offset_days", 1),
        ("notification", {"notification_type": None}, "notification_type", "info"),
        ("loop", {"itemVariable": None, "array_source": None}, "item_variable", "item"),
        ("fetch_data", {"filters": None}, "filters", []),
    ])
    def test_null_means_default(self, node_type, params, field, expected):
        assert getattr(validate_node_params(node_type, params), field) == expected

    def test_null_kept_where_default_is_null(self):
        params = validate_node_params("condition", {"field": "score", "value": None})
        assert params.value is None

    def test_data_type_key_does_not_override_discriminator(self):
        params = validate_node_params("notification", {"type": "warning", "title": "T"})
        assert params.type == "notification"


@pytest.mark.unit
class TestNormalizeNodeType:

    def test_aliases(self):
        assert normalize_node_type("email", {"to": "x"}) == ("send_email", {"to": "x"})
        assert normalize_node_type("task", {})[0] == "create_task"
        assert normalize_node_type(None, None) == ("unknown", {})

    def test_generic_action_node(self):
        node_type, params = normalize_node_type(
            "action", {"actionType": "send_email", "config": {"to": "x", "subject": "s"}}
        )
        assert node_type == "send_email"
        assert params["to"] == "x"


@pytest.mark.unit
class TestAutomationRule:

    def test_from_record(self):
        rule = AutomationRule.from_record({
            "id": "r1", "name": "Welcome", "trigger_event": "lead_created",
            "actions": {"type": "send_email", "value": "Hi {lead.contact_name}"},
            "execution_count": None, "organization_id": "org",
        })
        assert rule.execution_count == 0
        assert rule.actions.value == "Hi {lead.contact_name}"
