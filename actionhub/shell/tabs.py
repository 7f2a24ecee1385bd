"""
Tab manager: several open documents inside one page load.

Each tab is identified by its route path. Rules:
  - opening a path that is already open activates that tab
  - closing the active tab activates its left neighbour (or the new first tab)
  - tabs opened with is_closable=False (the home tab) ignore close requests
  - when the last tab closes, the default home tab is reopened
  - state is reset when the signed-in user changes

Invariants: at most one active tab; the active id always names an open
tab; never zero tabs while a default tab is configured.

Content is lazy when a loader is given: the tab opens in a loading state
and ``load_pending()`` fills it. A failing loader produces error content
instead of raising.
"""

import logging
from dataclasses import asdict, dataclass
from typing import Callable

from actionhub.core.exceptions import NotFoundError
from actionhub.shell.pages import HOME_TAB, resolve_page

logger = logging.getLogger(__name__)

LOAD_ERROR_CONTENT = {"page": "error", "params": {"message": "Error loading content."}}


@dataclass
class Tab:
    id: str
    path: str
    title: str
    icon: str | None = None
    is_closable: bool = True
    content: dict | None = None
    is_loading: bool = False

    def to_dict(self) -> dict:
        return asdict(self)


class TabManager:
    """In-memory tab state for one signed-in user."""

    def __init__(
        self,
        default_tab: dict | None = HOME_TAB,
        page_resolver: Callable[[str], dict] = resolve_page,
        owner_id: str | None = None,
    ) -> None:
        self.tabs: list[Tab] = []
        self.active_tab_id: str | None = None
        self.owner_id = owner_id
        self._default_tab = dict(default_tab) if default_tab else None
        self._resolve = page_resolver
        self._loaders: dict[str, Callable[[], dict]] = {}

    # ── Queries ──────────────────────────────────────────────────────────────

    def _index(self, tab_id: str) -> int | None:
        for i, tab in enumerate(self.tabs):
            if tab.id == tab_id:
                return i
        return None

    def get_tab(self, tab_id: str) -> Tab | None:
        index = self._index(tab_id)
        return self.tabs[index] if index is not None else None

    @property
    def active_tab(self) -> Tab | None:
        return self.get_tab(self.active_tab_id) if self.active_tab_id else None

    # ── Commands ─────────────────────────────────────────────────────────────

    def open_tab(
        self,
        path: str,
        title: str,
        icon: str | None = None,
        is_closable: bool = True,
        content: dict | None = None,
        loader: Callable[[], dict] | None = None,
    ) -> Tab:
        existing = self.get_tab(path)
        if existing is not None:
            self.active_tab_id = existing.id
            return existing

        tab = Tab(id=path, path=path, title=title, icon=icon, is_closable=is_closable)
        if loader is not None:
            tab.is_loading = True
            self._loaders[tab.id] = loader
        else:
            tab.content = content if content is not None else self._resolve(path)

        self.tabs.append(tab)
        self.active_tab_id = tab.id
        return tab

    def load_pending(self) -> list[str]:
        """Run queued loaders; returns the ids of the tabs that were filled."""
        loaded = []
        for tab in self.tabs:
            loader = self._loaders.pop(tab.id, None)
            if loader is None:
                continue
            try:
                tab.content = loader()
            except Exception:
                logger.warning("Loader for tab %s failed", tab.id, exc_info=True)
                tab.content = dict(LOAD_ERROR_CONTENT)
            tab.is_loading = False
            loaded.append(tab.id)
        return loaded

    def close_tab(self, tab_id: str) -> bool:
        """Close a tab. Unknown ids and non-closable tabs are ignored (returns False)."""
        index = self._index(tab_id)
        if index is None or not self.tabs[index].is_closable:
            return False

        was_active = self.active_tab_id == tab_id
        del self.tabs[index]
        self._loaders.pop(tab_id, None)

        if not self.tabs:
            self.active_tab_id = None
            self.ensure_default_tabs()
        elif was_active:
            self.active_tab_id = self.tabs[index - 1 if index > 0 else 0].id
        return True

    def close_current_tab(self) -> bool:
        if self.active_tab_id is None:
            return False
        return self.close_tab(self.active_tab_id)

    def set_active_tab(self, tab_id: str) -> Tab:
        tab = self.get_tab(tab_id)
        if tab is None:
            raise NotFoundError("Tab", tab_id)
        self.active_tab_id = tab.id
        return tab

    def ensure_default_tabs(self) -> None:
        if not self.tabs and self._default_tab:
            self.open_tab(**self._default_tab)

    def reset(self, owner_id: str | None = None) -> None:
        """Drop every tab (user changed) and reopen the defaults."""
        self.tabs = []
        self.active_tab_id = None
        self._loaders.clear()
        self.owner_id = owner_id
        self.ensure_default_tabs()

    # ── Serialisation ────────────────────────────────────────────────────────

    def to_dict(self) -> dict:
        return {
            "owner_id": self.owner_id,
            "active_tab_id": self.active_tab_id,
            "tabs": [tab.to_dict() for tab in self.tabs],
        }

    @classmethod
    def from_dict(cls, state: dict | None, **kwargs) -> "TabManager":
        manager = cls(**kwargs)
        if not state:
            return manager
        manager.owner_id = state.get("owner_id")
        manager.tabs = [Tab(**tab) for tab in state.get("tabs") or []]
        active = state.get("active_tab_id")
        if manager.get_tab(active) is not None:
            manager.active_tab_id = active
        elif manager.tabs:
            manager.active_tab_id = manager.tabs[0].id
        return manager
