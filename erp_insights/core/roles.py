"""Role policy table — which dashboard modules and actions each role may reach.

Three distinct vocabularies are involved and must not be confused:

- ``NavModuleId``: navigation modules ("Sales", "SupplyChain", ...) gated
  by ``can_access_module``.
- ``ActionModuleKey``: lowercase keys of the per-module action map
  ("sales", "dashboards", ...) gated by ``can_perform_action``.
- SAP module names (see ``erp_insights.connectors.odata``) used only by the
  OData gateway.
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional, Union


class NavModuleId(str, Enum):
    DASHBOARD = "Dashboard"
    CUSTOM_DASHBOARD = "CustomDashboard"
    SALES = "Sales"
    PURCHASE = "Purchase"
    INVENTORY = "Inventory"
    PRODUCTION = "Production"
    FINANCE = "Finance"
    INSIGHTS = "Insights"
    SUPPLY_CHAIN = "SupplyChain"
    DELIVERIES = "Deliveries"
    CROSS_MODULE_ANALYTICS = "CrossModuleAnalytics"
    REPORTS = "Reports"


class ActionModuleKey(str, Enum):
    SALES = "sales"
    INVENTORY = "inventory"
    DELIVERIES = "deliveries"
    PURCHASE = "purchase"
    PRODUCTION = "production"
    FINANCE = "finance"
    DASHBOARDS = "dashboards"
    REPORTS = "reports"


class Action(str, Enum):
    VIEW = "view"
    CREATE = "create"
    EDIT = "edit"
    DELETE = "delete"


ADMIN_ROLE = "Admin"


def _parse_enum(enum_cls, value):
    """Return ``enum_cls(value)`` or None when the value is not a member."""
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        return None


# Navigation module -> action-map key. Built by literal lower-casing, so
# "Dashboard" and "CustomDashboard" have no key ("dashboards" does not match)
# and every action check against them is denied.
NAV_TO_ACTION_KEY: Dict[NavModuleId, ActionModuleKey] = {
    module: ActionModuleKey(module.value.lower())
    for module in NavModuleId
    if _parse_enum(ActionModuleKey, module.value.lower()) is not None
}


def action_key_for(module_id: Union[NavModuleId, str]) -> Optional[ActionModuleKey]:
    """Map a navigation module id onto its action-map key, or None."""
    module = _parse_enum(NavModuleId, module_id)
    if module is None:
        return None
    return NAV_TO_ACTION_KEY.get(module)


@dataclass(frozen=True)
class RolePolicy:
    """Modules a role may navigate to and the verbs it may use per module."""

    name: str
    modules: FrozenSet[NavModuleId] = frozenset()
    actions: Mapping[ActionModuleKey, FrozenSet[Action]] = field(default_factory=dict)

    def allows_module(self, module_id: Union[NavModuleId, str, None]) -> bool:
        module = _parse_enum(NavModuleId, module_id)
        return module is not None and module in self.modules

    def allows_action(
        self,
        module_key: Union[ActionModuleKey, str, None],
        action: Union[Action, str, None],
    ) -> bool:
        key = _parse_enum(ActionModuleKey, module_key)
        verb = _parse_enum(Action, action)
        if key is None or verb is None:
            return False
        return verb in self.actions.get(key, frozenset())

    def allowed_actions(self, module_key: Union[ActionModuleKey, str]) -> List[str]:
        key = _parse_enum(ActionModuleKey, module_key)
        if key is None:
            return []
        return [a.value for a in Action if a in self.actions.get(key, frozenset())]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "modules": [m.value for m in NavModuleId if m in self.modules],
            "actions": {k.value: self.allowed_actions(k) for k in ActionModuleKey},
        }

    @classmethod
    def from_dict(cls, name: str, data: Mapping[str, Any]) -> "RolePolicy":
        """Build a policy from ``{"modules": [...], "actions": {key: [verbs]}}``.

        Raises:
            ValueError: On a module id, action key or verb outside the known vocabularies.
        """
        modules = frozenset(NavModuleId(m) for m in data.get("modules", []))
        actions = {
            ActionModuleKey(key): frozenset(Action(v) for v in verbs)
            for key, verbs in (data.get("actions") or {}).items()
        }
        return cls(name=name, modules=modules, actions=actions)


def _policy(name: str, modules: Iterable[str], actions: Mapping[str, Iterable[str]]) -> RolePolicy:
    return RolePolicy.from_dict(name, {"modules": list(modules), "actions": actions})


DEFAULT_ROLE_POLICIES: Dict[str, RolePolicy] = {
    p.name: p
    for p in [
        _policy(
            "Admin",
            [m.value for m in NavModuleId],
            {k.value: [a.value for a in Action] for k in ActionModuleKey},
        ),
        _policy(
            "Sales Manager",
            ["Dashboard", "CustomDashboard", "Sales", "Insights", "Reports"],
            {
                "sales": ["view", "create", "edit"],
                "inventory": ["view"],
                "deliveries": ["view"],
                "purchase": [],
                "production": [],
                "finance": [],
                "dashboards": ["view", "create", "edit"],
                "reports": ["view", "create"],
            },
        ),
        _policy(
            "Inventory Clerk",
            ["Dashboard", "CustomDashboard", "Inventory", "Purchase", "Production", "Reports"],
            {
                "sales": ["view"],
                "inventory": ["view", "create", "edit"],
                "deliveries": ["view"],
                "purchase": ["view", "create"],
                "production": ["view"],
                "finance": [],
                "dashboards": ["view", "create"],
                "reports": ["view"],
            },
        ),
        _policy(
            "Logistics Coordinator",
            ["Dashboard", "CustomDashboard", "Deliveries", "SupplyChain", "Inventory", "Reports"],
            {
                "sales": ["view"],
                "inventory": ["view"],
                "deliveries": ["view", "create", "edit"],
                "purchase": ["view"],
                "production": [],
                "finance": [],
                "dashboards": ["view", "create"],
                "reports": ["view"],
            },
        ),
    ]
}


class RolePolicyTable:
    """Read-only role -> policy lookup with an explicit fallback role."""

    def __init__(self, policies: Mapping[str, RolePolicy], fallback_role: str):
        if fallback_role not in policies:
            raise ValueError(f"Fallback role '{fallback_role}' is not in the policy table")
        self._policies: Dict[str, RolePolicy] = dict(policies)
        self.fallback_role = fallback_role

    def resolve(self, role: Optional[str]) -> RolePolicy:
        """Return the policy for ``role``; unknown or missing roles get the fallback."""
        if role is not None and role in self._policies:
            return self._policies[role]
        return self._policies[self.fallback_role]

    def has_role(self, role: str) -> bool:
        return role in self._policies

    @property
    def roles(self) -> List[str]:
        return list(self._policies)

    def assignable_roles(self) -> List[str]:
        """Roles that may be stored as a user's custom role."""
        return [r for r in self._policies if r != ADMIN_ROLE]

    def matrix(self) -> Dict[str, Dict[str, Any]]:
        return {name: policy.to_dict() for name, policy in self._policies.items()}

    @classmethod
    def from_mapping(cls, data: Mapping[str, Mapping[str, Any]], fallback_role: str) -> "RolePolicyTable":
        policies = {name: RolePolicy.from_dict(name, entry) for name, entry in data.items()}
        return cls(policies, fallback_role)

    @classmethod
    def from_file(cls, path: Union[str, Path], fallback_role: str) -> "RolePolicyTable":
        with open(path, "r", encoding="utf-8") as f:
            return cls.from_mapping(json.load(f), fallback_role)

    @classmethod
    def default(cls, fallback_role: str = "Sales Manager") -> "RolePolicyTable":
        return cls(DEFAULT_ROLE_POLICIES, fallback_role)


def build_policy_table(policy_file: Optional[str], fallback_role: str) -> RolePolicyTable:
    """Load the policy table from ``policy_file`` or fall back to the built-in one."""
    if policy_file:
        return RolePolicyTable.from_file(policy_file, fallback_role)
    return RolePolicyTable.default(fallback_role)
