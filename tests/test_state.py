import json
import tempfile
import unittest
from pathlib import Path

from goghflow.crawl.state import CollectionStateStore
from goghflow.io.models import ArtistProgress, CollectionState


class TestCollectionStateStore(unittest.TestCase):

    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.path = Path(self._tmp.name) / "collect-state.json"
        self.store = CollectionStateStore(self.path)

    def test_missing_file_loads_empty(self) -> None:
        self.assertEqual(self.store.load().by_artist, {})

    def test_unparsable_file_loads_empty(self) -> None:
        self.path.write_text("{ byArtist: nope", encoding="utf-8")
        self.assertEqual(self.store.load().by_artist, {})

    def test_wrong_shape_loads_empty(self) -> None:
        self.path.write_text(json.dumps([1, 2, 3]), encoding="utf-8")
        self.assertEqual(self.store.load().by_artist, {})
        self.path.write_text(json.dumps({"byArtist": "x"}), encoding="utf-8")
        self.assertEqual(self.store.load().by_artist, {})

    def test_malformed_entries_are_dropped(self) -> None:
        payload = {
            "byArtist": {
                "Claude Monet": {"cursor": 12, "kept": 3},
                "Edgar Degas": {"cursor": -1, "kept": 0},
                "Paul Cézanne": "broken",
            }
        }
        self.path.write_text(json.dumps(payload), encoding="utf-8")
        state = self.store.load()
        self.assertEqual(state.by_artist, {"Claude Monet": ArtistProgress(12, 3)})

    def test_save_then_load(self) -> None:
        state = CollectionState({"Vincent van Gogh": ArtistProgress(cursor=3, kept=1)})
        self.store.save(state)

        on_disk = json.loads(self.path.read_text(encoding="utf-8"))
        self.assertEqual(on_disk, {"byArtist": {"Vincent van Gogh": {"cursor": 3, "kept": 1}}})
        self.assertEqual(self.store.load().by_artist, state.by_artist)

    def test_save_leaves_no_temporary_files(self) -> None:
        for cursor in range(5):
            self.store.save(CollectionState({"Claude Monet": ArtistProgress(cursor, 0)}))
        self.assertEqual([p.name for p in self.path.parent.iterdir()], [self.path.name])


if __name__ == "__main__":
    unittest.main()
