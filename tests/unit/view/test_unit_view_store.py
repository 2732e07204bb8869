# tests/unit/view/test_unit_view_store.py - v1
"""Tests for view/store.py - one JSON file per view."""

from __future__ import annotations

import json

import pytest

from alldocs.core.errors import ViewNotFoundError
from alldocs.view.models import View
from alldocs.view.store import ViewStore, safe_view_name


class TestViewStore:
    @pytest.mark.asyncio
    async def test_save_and_load(self, tmp_path):
        store = ViewStore(tmp_path)
        view = View(name="npm-packuments", origin="npm", select="name")
        await store.save(view)
        path = tmp_path / "views" / "npm-packuments.view.json"
        assert json.loads(path.read_text(encoding="utf-8"))["origin"] == "npm"
        assert await store.load("npm-packuments") == view

    @pytest.mark.asyncio
    async def test_save_overwrites(self, tmp_path):
        store = ViewStore(tmp_path)
        await store.save(View(name="v", origin="npm", select="name"))
        await store.save(View(name="v", origin="npm", select="version"))
        assert (await store.load("v")).select == "version"

    @pytest.mark.asyncio
    async def test_load_missing(self, tmp_path):
        with pytest.raises(ViewNotFoundError, match="view list"):
            await ViewStore(tmp_path).load("nope")

    @pytest.mark.asyncio
    async def test_list_sorted(self, tmp_path):
        store = ViewStore(tmp_path)
        assert await store.list() == []
        for name in ["b", "a", "c"]:
            await store.save(View(name=name, origin="npm"))
        assert await store.list() == ["a", "b", "c"]

    @pytest.mark.asyncio
    async def test_delete(self, tmp_path):
        store = ViewStore(tmp_path)
        await store.save(View(name="v", origin="npm"))
        assert await store.exists("v") is True
        await store.delete("v")
        assert await store.exists("v") is False
        with pytest.raises(ViewNotFoundError):
            await store.delete("v")

    def test_safe_view_name(self):
        assert safe_view_name("../etc/passwd") == "___etc_passwd"
        assert safe_view_name("ok-name_1") == "ok-name_1"
