"""Health check: how an application is registered and consented in the signed-in tenant."""

import logging
from dataclasses import dataclass, field
from typing import Any

from aadappcheck.auth import SessionToken
from aadappcheck.client.graph import GraphClient
from aadappcheck.client.response import GraphResult

logger = logging.getLogger(__name__)

# The global administrator role as it is named in the directory.
COMPANY_ADMINISTRATOR = "Company Administrator"


@dataclass
class HealthReport:
    application: dict | None = None
    user: dict | None = None
    service_principal: dict | None = None
    directory_roles: list[dict] | None = None
    required_resources: list[dict] = field(default_factory=list)
    is_company_admin: bool | None = None  # None when it could not be determined
    grants: list[dict] | None = None
    errors: dict[str, BaseException] = field(default_factory=dict)

    @property
    def user_grants(self) -> list[dict]:
        """Grants the signed-in user made to the app."""
        if not self.grants or not self.user:
            return []
        return [g for g in self.grants if g.get("principalId") == self.user.get("objectId")]

    @property
    def admin_grants(self) -> list[dict]:
        """Grants an admin consented to on behalf of all users."""
        return [g for g in self.grants or [] if g.get("consentType") == "AllPrincipals"]


def app_filter(app_id: str) -> str:
    return f"appId eq '{app_id}'"


async def run_healthcheck(graph: GraphClient, token: SessionToken, app_id: str) -> HealthReport:
    report = HealthReport()

    application, user, service_principal, roles = await graph.call_all([
        ("GetApplications", {"$filter": app_filter(app_id)}),
        ("GetUser", {"userId": token.user_id}),
        ("GetServicePrincipals", {"$filter": app_filter(app_id)}),
        ("GetDirectoryRoles", None),
    ])

    if _ok(report, "application", application):
        report.application = _first(application)
    if _ok(report, "user", user):
        report.user = user.body
    if _ok(report, "service_principal", service_principal):
        report.service_principal = _first(service_principal)
    if _ok(report, "directory_roles", roles):
        report.directory_roles = _values(roles)

    # Second round depends on what the first one found.
    # (label, operation_id, params)
    calls: list[tuple[str, str, dict[str, Any]]] = []
    if report.service_principal:
        calls.append((
            "grants",
            "GetServicePrincipalOAuth2PermissionGrants",
            {"spObjectId": report.service_principal.get("objectId")},
        ))
    admin_role = _find_role(report.directory_roles, COMPANY_ADMINISTRATOR)
    if admin_role and report.user:
        calls.append(("admin_members", "GetDirectoryRoleMembers", {"roleObjectId": admin_role.get("objectId")}))
    if report.application:
        for access in report.application.get("requiredResourceAccess") or []:
            resource_app_id = access.get("resourceAppId")
            calls.append((
                f"resource {resource_app_id}",
                "GetServicePrincipals",
                {"$filter": app_filter(resource_app_id)},
            ))

    results = await graph.call_all((op, params) for _, op, params in calls)

    for (label, _, _), result in zip(calls, results):
        if not _ok(report, label, result):
            continue
        if label == "grants":
            report.grants = _values(result)
        elif label == "admin_members":
            member_ids = {m.get("objectId") for m in _values(result)}
            report.is_company_admin = report.user.get("objectId") in member_ids
        else:
            resource = _first(result)
            if resource:
                report.required_resources.append(resource)

    return report


def _ok(report: HealthReport, name: str, result: GraphResult | BaseException) -> bool:
    if isinstance(result, BaseException):
        logger.info("healthcheck: %s lookup failed: %s", name, result)
        report.errors[name] = result
        return False
    return True


def _values(result: GraphResult) -> list[dict]:
    body = result.body if isinstance(result.body, dict) else {}
    return body.get("value") or []


def _first(result: GraphResult) -> dict | None:
    values = _values(result)
    return values[0] if values else None


def _find_role(roles: list[dict] | None, display_name: str) -> dict | None:
    for role in roles or []:
        if role.get("displayName") == display_name:
            return role
    return None
