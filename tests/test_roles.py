"""Role policy table: lookups, fallback and the module vocabularies."""
import json

import pytest

from erp_insights.core.roles import (
    ADMIN_ROLE,
    Action,
    ActionModuleKey,
    NavModuleId,
    RolePolicyTable,
    action_key_for,
    build_policy_table,
)

ROLES = ["Admin", "Sales Manager", "Inventory Clerk", "Logistics Coordinator"]

# (role, a module it may reach, a module it may not)
MODULE_CASES = [
    ("Admin", "CrossModuleAnalytics", None),
    ("Sales Manager", "Sales", "Finance"),
    ("Inventory Clerk", "Production", "Sales"),
    ("Logistics Coordinator", "SupplyChain", "Purchase"),
]


@pytest.fixture
def table():
    return RolePolicyTable.default("Sales Manager")


class TestRolePolicyTable:

    def test_known_roles_resolve_to_themselves(self, table):
        for role in ROLES:
            assert table.resolve(role).name == role

    @pytest.mark.parametrize("role", ["Auditor", "", "admin", "sales manager", None])
    def test_unknown_roles_resolve_to_fallback(self, table, role):
        policy = table.resolve(role)
        assert policy.name == "Sales Manager"
        assert policy.modules

    @pytest.mark.parametrize("role,member,non_member", MODULE_CASES)
    def test_module_membership(self, table, role, member, non_member):
        policy = table.resolve(role)
        assert policy.allows_module(member) is True
        if non_member:
            assert policy.allows_module(non_member) is False

    def test_admin_reaches_every_module_and_action(self, table):
        admin = table.resolve(ADMIN_ROLE)
        assert all(admin.allows_module(m) for m in NavModuleId)
        assert all(admin.allows_action(k, a) for k in ActionModuleKey for a in Action)

    def test_unknown_module_id_is_denied(self, table):
        assert table.resolve("Admin").allows_module("Payroll") is False
        assert table.resolve("Admin").allows_module(None) is False

    def test_action_not_in_verb_set_is_denied(self, table):
        sales_manager = table.resolve("Sales Manager")
        assert sales_manager.allows_action("sales", "edit") is True
        assert sales_manager.allows_action("sales", "delete") is False
        assert sales_manager.allows_action("finance", "view") is False

    def test_unknown_action_key_is_denied(self, table):
        admin = table.resolve("Admin")
        assert admin.allows_action("payroll", "view") is False
        assert admin.allows_action("Sales", "view") is False
        assert admin.allows_action("sales", "approve") is False

    def test_missing_key_in_action_map_is_denied(self):
        table = RolePolicyTable.from_mapping(
            {"Viewer": {"modules": ["Dashboard"], "actions": {"reports": ["view"]}}},
            fallback_role="Viewer",
        )
        assert table.resolve("Viewer").allows_action("sales", "view") is False
        assert table.resolve("Viewer").allows_action("reports", "view") is True

    def test_fallback_must_exist(self):
        with pytest.raises(ValueError):
            RolePolicyTable.default("Chief Executive")

    def test_invalid_vocabulary_rejected_on_load(self):
        with pytest.raises(ValueError):
            RolePolicyTable.from_mapping(
                {"Viewer": {"modules": ["Payroll"], "actions": {}}}, fallback_role="Viewer",
            )

    def test_assignable_roles_exclude_admin(self, table):
        assert ADMIN_ROLE not in table.assignable_roles()
        assert "Inventory Clerk" in table.assignable_roles()

    def test_matrix_lists_every_action_key(self, table):
        matrix = table.matrix()
        assert set(matrix) == set(ROLES)
        assert matrix["Sales Manager"]["actions"]["purchase"] == []
        assert matrix["Inventory Clerk"]["actions"]["purchase"] == ["view", "create"]

    def test_load_from_file(self, tmp_path):
        path = tmp_path / "roles.json"
        path.write_text(json.dumps({
            "Analyst": {"modules": ["Reports", "Insights"], "actions": {"reports": ["view"]}},
        }))
        table = build_policy_table(str(path), "Analyst")
        assert table.roles == ["Analyst"]
        assert table.resolve("Sales Manager").allows_module("Reports") is True
        assert table.resolve("Sales Manager").allows_module("Sales") is False

    def test_default_table_when_no_file(self):
        assert build_policy_table(None, "Sales Manager").roles == ROLES


class TestModuleVocabularies:

    @pytest.mark.parametrize("module,key", [
        ("Sales", ActionModuleKey.SALES),
        ("Purchase", ActionModuleKey.PURCHASE),
        ("Inventory", ActionModuleKey.INVENTORY),
        ("Production", ActionModuleKey.PRODUCTION),
        ("Finance", ActionModuleKey.FINANCE),
        ("Deliveries", ActionModuleKey.DELIVERIES),
        ("Reports", ActionModuleKey.REPORTS),
        (NavModuleId.SALES, ActionModuleKey.SALES),
    ])
    def test_lowercased_ids_map_to_action_keys(self, module, key):
        assert action_key_for(module) is key

    @pytest.mark.parametrize("module", ["Dashboard", "CustomDashboard", "Insights", "SupplyChain", "CrossModuleAnalytics"])
    def test_ids_without_action_key(self, module):
        assert action_key_for(module) is None

    def test_unknown_or_miscased_ids(self):
        assert action_key_for("sales") is None
        assert action_key_for("Payroll") is None
