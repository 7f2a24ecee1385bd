"""
Page registry: maps route paths to the page a tab renders, plus the
sidebar navigation entries.

Query strings are ignored when resolving; ``/actions/<id>`` resolves to
the action detail page; anything unknown resolves to ``not_found``.
"""

PAGE_NOT_FOUND = "not_found"
PAGE_ACTION_DETAIL = "action_detail"

PAGE_REGISTRY = {
    "/dashboard": "dashboard",
    "/actions": "actions",
    "/actions/new": "action_new",
    "/reports": "reports",
    "/my-groups": "my_groups",
    "/settings": "master_data",
    "/workflow": "workflow",
    "/user-management": "user_management",
    "/group-management": "group_management",
}

HOME_TAB = {
    "path": "/dashboard",
    "title": "Panel de Control",
    "icon": "home",
    "is_closable": False,
}

MAIN_NAVIGATION = (
    {"path": "/dashboard", "title": "Panel de Control", "icon": "home"},
    {"path": "/actions", "title": "Acciones de Mejora", "icon": "list-checks"},
    {"path": "/reports", "title": "Informes", "icon": "bar-chart"},
    {"path": "/my-groups", "title": "Mis Grupos", "icon": "users"},
)

ADMIN_NAVIGATION = (
    {"path": "/settings", "title": "Datos Maestros", "icon": "settings"},
    {"path": "/workflow", "title": "Flujo de Trabajo", "icon": "git-branch"},
    {"path": "/user-management", "title": "Usuarios", "icon": "user-cog"},
    {"path": "/group-management", "title": "Grupos", "icon": "users-round"},
)


def resolve_page(path: str) -> dict:
    """Content descriptor for a tab path: ``{"page": key, "params": {...}}``."""
    route = (path or "").split("?", 1)[0].split("#", 1)[0]
    if len(route) > 1:
        route = route.rstrip("/")

    page = PAGE_REGISTRY.get(route)
    if page is not None:
        return {"page": page, "params": {}}

    parts = route.strip("/").split("/")
    if len(parts) == 2 and parts[0] == "actions" and parts[1]:
        return {"page": PAGE_ACTION_DETAIL, "params": {"action_id": parts[1]}}

    return {"page": PAGE_NOT_FOUND, "params": {"path": path}}


def navigation_for(is_admin: bool) -> dict:
    return {
        "main": [dict(item) for item in MAIN_NAVIGATION],
        "admin": [dict(item) for item in ADMIN_NAVIGATION] if is_admin else [],
    }
