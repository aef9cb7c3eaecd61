"""Tests for the SQLite map store."""

from mindline.database import Database, MapSettings
from mindline.document import ConnectorStyle, LayoutMode


class TestMaps:
    def test_create_and_get(self, db):
        created = db.create_map(
            "Plan", "- Plan\n  - Step\n",
            connector_style=ConnectorStyle.CURVED,
            layout_mode=LayoutMode.RTL,
            settings=MapSettings(zoom_level=1.5, pan_x=3.0, pan_y=-4.0, show_grid=False),
        )
        loaded = db.get_map(created.id)
        assert loaded.name == "Plan"
        assert loaded.outline_text == "- Plan\n  - Step\n"
        assert loaded.connector_style == ConnectorStyle.CURVED
        assert loaded.layout_mode == LayoutMode.RTL
        assert loaded.settings == MapSettings(1.5, 3.0, -4.0, False)
        assert loaded.created_at == created.created_at

    def test_missing_map(self, db):
        assert db.get_map(999) is None

    def test_save_keeps_created_at(self, db):
        mind_map = db.create_map("A", "- A\n")
        created_at = mind_map.created_at
        mind_map.outline_text = "- A\n  - B\n"
        db.save_map(mind_map)
        loaded = db.get_map(mind_map.id)
        assert loaded.outline_text == "- A\n  - B\n"
        assert loaded.created_at == created_at

    def test_get_all_maps(self, db):
        db.create_map("One", "- One\n")
        db.create_map("Two", "- Two\n")
        assert sorted(m.name for m in db.get_all_maps()) == ["One", "Two"]

    def test_rename_rewrites_root_line(self, db):
        mind_map = db.create_map("Old", "- Old {style:pill}\n  - child\n")
        renamed = db.rename_map(mind_map.id, "  New ")
        assert renamed.name == "New"
        assert db.get_map(mind_map.id).outline_text == "- New {style:pill}\n  - child\n"

    def test_rename_rejects_blank(self, db):
        mind_map = db.create_map("Old", "- Old\n")
        assert db.rename_map(mind_map.id, "   ") is None
        assert db.rename_map(12345, "x") is None
        assert db.get_map(mind_map.id).name == "Old"

    def test_duplicate(self, db):
        original = db.create_map("Orig", "- Orig\n  - a\n",
                                 layout_mode=LayoutMode.LTR)
        copy = db.duplicate_map(original.id, "Orig (copy)")
        assert copy.id != original.id
        assert copy.outline_text == "- Orig (copy)\n  - a\n"
        assert copy.layout_mode == LayoutMode.LTR
        assert db.duplicate_map(999, "x") is None

    def test_delete(self, db):
        mind_map = db.create_map("Gone", "- Gone\n")
        db.delete_map(mind_map.id)
        assert db.get_map(mind_map.id) is None
        assert db.get_all_maps() == []

    def test_reopen_persists(self, tmp_path):
        path = tmp_path / "persist.db"
        first = Database(path)
        map_id = first.create_map("Kept", "- Kept\n").id
        first.close()
        second = Database(path)
        assert second.get_map(map_id).name == "Kept"
        second.close()


class TestSettings:
    def test_default(self, db):
        assert db.get_setting("missing") is None
        assert db.get_setting("missing", 7) == 7

    def test_round_trip_json_values(self, db):
        db.set_setting("show_grid", False)
        db.set_setting("history_limit", 50)
        db.set_setting("default_layout_mode", "rtl")
        assert db.get_setting("show_grid") is False
        assert db.get_setting("history_limit") == 50
        assert db.get_setting("default_layout_mode") == "rtl"

    def test_overwrite(self, db):
        db.set_setting("k", 1)
        db.set_setting("k", 2)
        assert db.get_setting("k") == 2


class TestMapSettings:
    def test_json_round_trip(self):
        settings = MapSettings(zoom_level=2.0, pan_x=1.0, pan_y=2.0, show_grid=False)
        assert MapSettings.from_json(settings.to_json()) == settings

    def test_unknown_fields_are_ignored(self):
        loaded = MapSettings.from_json('{"zoom_level": 0.5, "minimap": true}')
        assert loaded == MapSettings(zoom_level=0.5)

    def test_bad_json_gives_defaults(self):
        assert MapSettings.from_json("not json") == MapSettings()
        assert MapSettings.from_json(None) == MapSettings()
