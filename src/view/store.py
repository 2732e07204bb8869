# src/view/store.py - v1
"""File-based storage for view definitions.

One ``{name}.view.json`` file per view under ``{config_dir}/views``.
Saving is last-write-wins.
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path

from alldocs.core.errors import ViewNotFoundError
from alldocs.view.models import View

logger = logging.getLogger(__name__)

_SUFFIX = ".view.json"


def safe_view_name(name: str) -> str:
    """Filesystem-safe form of a view name (no directory traversal)."""
    return re.sub(r"[^A-Za-z0-9_-]", "_", name)


class ViewStore:
    """Persist and resolve named views."""

    def __init__(self, config_dir: Path | str) -> None:
        self._views_dir = Path(config_dir).expanduser() / "views"

    @property
    def views_dir(self) -> Path:
        return self._views_dir

    def view_path(self, name: str) -> Path:
        return self._views_dir / f"{safe_view_name(name)}{_SUFFIX}"

    async def save(self, view: View) -> None:
        """Write the view definition, replacing any existing one."""
        self._views_dir.mkdir(parents=True, exist_ok=True)
        path = self.view_path(view.name)
        path.write_text(json.dumps(view.to_json(), indent=2), encoding="utf-8")
        logger.debug("Saved view %s to %s", view.name, path)

    async def load(self, name: str) -> View:
        """Load a view by name.

        Raises:
            ViewNotFoundError: If no view file exists for ``name``.
        """
        try:
            text = self.view_path(name).read_text(encoding="utf-8")
        except FileNotFoundError:
            raise ViewNotFoundError(
                f"View '{name}' not found. Run 'alldocs view list' to see available views."
            ) from None
        return View.from_json(json.loads(text))

    async def list(self) -> list[str]:
        """Return the names of all stored views, sorted."""
        if not self._views_dir.is_dir():
            return []
        return sorted(p.name[: -len(_SUFFIX)] for p in self._views_dir.glob(f"*{_SUFFIX}"))

    async def delete(self, name: str) -> None:
        """Remove a view definition.

        Raises:
            ViewNotFoundError: If the view does not exist.
        """
        try:
            self.view_path(name).unlink()
        except FileNotFoundError:
            raise ViewNotFoundError(f"View '{name}' not found.") from None

    async def exists(self, name: str) -> bool:
        return self.view_path(name).is_file()
