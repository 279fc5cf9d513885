from cliptrail.menu import compute_menu_specs, entry_preview


def titles(specs):
    return [s.title if s is not None else None for s in specs]


class TestEntryPreview:
    def test_text_truncated(self, store):
        entry = store.insert_text("word " * 40)
        preview = entry_preview(entry, max_len=30)
        assert len(preview) == 30
        assert preview.endswith("...")

    def test_image_dimensions(self, store, make_image):
        entry = store.insert_image(make_image(64, 48))
        assert entry_preview(entry) == "[Image: 64x48]"


class TestComputeMenuSpecs:
    def test_empty_history(self):
        specs = compute_menu_specs([])
        assert titles(specs) == [
            "Clipboard History (0 items)",
            None,
            "(No clipboard history)",
            None,
            "Clear History",
            None,
            "Quit",
        ]

    def test_newest_first(self, store):
        for text in ["oldest", "middle", "newest"]:
            store.insert_text(text)
        specs = compute_menu_specs(store.snapshot())
        assert titles(specs)[2:5] == ["newest", "middle", "oldest"]

    def test_limit(self, store):
        for i in range(20):
            store.insert_text(f"entry {i}")
        specs = compute_menu_specs(store.snapshot(), limit=5)
        entries = [s for s in specs if s is not None and s.entry_id is not None]
        assert len(entries) == 5
        assert entries[0].title == "entry 19"
        assert specs[0].title == "Clipboard History (20 items)"

    def test_entry_ids_and_callbacks(self, store):
        entry = store.insert_text("clickable")

        def on_entry(sender):
            pass

        specs = compute_menu_specs(store.snapshot(), on_entry=on_entry)
        assert specs[2].entry_id == entry.id
        assert specs[2].callback is on_entry

    def test_image_icon(self, store, make_image):
        store.insert_image(make_image())
        specs = compute_menu_specs(store.snapshot(), icon_for=lambda e: "/tmp/thumb.png")
        assert specs[2].icon == "/tmp/thumb.png"
        assert specs[2].dimensions == (32, 32)
        assert specs[2].template is False

    def test_image_without_thumbnail(self, store, make_image):
        store.insert_image(make_image())
        specs = compute_menu_specs(store.snapshot(), icon_for=lambda e: None)
        assert specs[2].icon is None
