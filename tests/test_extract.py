import tempfile
import unittest
from pathlib import Path
from unittest import mock

import numpy as np
from PIL import Image

from fakes import png_bytes
from goghflow.config import DataPaths, FeatureConfig
from goghflow.features import extract
from goghflow.features.extract import extract_features, extract_one
from goghflow.features.imaging import ImageMissing, ImageUnreadable, load_image
from goghflow.io.models import ArtworkRecord


def gradient_image(seed: int) -> np.ndarray:
    rng = np.random.default_rng(seed)
    return rng.integers(0, 256, size=(48, 64, 3), dtype=np.uint8)


class TestExtractFeatures(unittest.TestCase):

    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.paths = DataPaths(Path(self._tmp.name))
        self.paths.images_dir.mkdir(parents=True)
        self.config = FeatureConfig(workers=2)
        self.artworks = [ArtworkRecord(object_id=object_id) for object_id in (1, 2, 3, 4)]
        self.paths.image_path(1).write_bytes(png_bytes(gradient_image(1)))
        self.paths.image_path(2).write_bytes(png_bytes(gradient_image(2)))
        self.paths.image_path(4).write_bytes(b"definitely not an image")

    def test_records_only_readable_images(self) -> None:
        report = extract_features(self.artworks, self.paths, self.config)

        self.assertEqual(sorted(report.features), [1, 2])
        self.assertEqual(report.computed, 2)
        self.assertTrue(report.skipped[3].startswith("ImageMissing"))
        self.assertTrue(report.skipped[4].startswith("ImageUnreadable"))

    def test_record_contents_and_texture_map(self) -> None:
        report = extract_features(self.artworks[:1], self.paths, self.config)
        record = report.features[1]

        self.assertEqual(record.texture_map_url, "./data/overlays/1-texture.png")
        self.assertEqual(record.stroke_direction.bins, 12)
        self.assertTrue(record.palette.swatches)
        map_path = self.paths.texture_map_path(1)
        with Image.open(map_path) as edge_map:
            self.assertEqual(edge_map.mode, "L")
            self.assertEqual(
                edge_map.size,
                (record.texture_energy.width, record.texture_energy.height),
            )

    def test_unchanged_images_are_reused(self) -> None:
        first = extract_features(self.artworks, self.paths, self.config)

        second = extract_features(self.artworks, self.paths, self.config, previous=first.features)

        self.assertEqual(second.computed, 0)
        self.assertEqual(second.reused, 2)
        self.assertEqual(second.features[1].to_dict(), first.features[1].to_dict())

    def test_changed_image_is_recomputed(self) -> None:
        first = extract_features(self.artworks[:1], self.paths, self.config)
        self.paths.image_path(1).write_bytes(png_bytes(gradient_image(9)))

        record, computed = extract_one(self.artworks[0], self.paths, self.config, first.features[1])

        self.assertTrue(computed)
        self.assertNotEqual(record.source_digest, first.features[1].source_digest)

    def test_missing_texture_map_forces_recompute(self) -> None:
        first = extract_features(self.artworks[:1], self.paths, self.config)
        self.paths.texture_map_path(1).unlink()

        _, computed = extract_one(self.artworks[0], self.paths, self.config, first.features[1])

        self.assertTrue(computed)
        self.assertTrue(self.paths.texture_map_path(1).exists())

    def test_single_pixel_image_gets_a_record(self) -> None:
        self.paths.image_path(3).write_bytes(png_bytes(np.full((1, 1, 3), 90, dtype=np.uint8)))

        report = extract_features(self.artworks[:3], self.paths, self.config)

        self.assertEqual(sorted(report.features), [1, 2, 3])
        self.assertEqual(report.features[3].palette.swatches[0].hex, "#5a5a5a")
        self.assertEqual(report.skipped, {})

    def test_failed_analysis_skips_only_that_artwork(self) -> None:
        failing_map = self.paths.texture_map_path(2)
        write = extract.atomic_write_bytes

        def write_or_fail(path: Path, data: bytes) -> Path:
            if path == failing_map:
                raise OSError("disk full")
            return write(path, data)

        with mock.patch.object(extract, "atomic_write_bytes", side_effect=write_or_fail):
            with self.assertLogs("goghflow.features.extract", level="ERROR"):
                report = extract_features(self.artworks, self.paths, self.config)

        self.assertEqual(sorted(report.features), [1])
        self.assertEqual(report.skipped[2], "OSError: disk full")
        self.assertIn(3, report.skipped)
        self.assertIn(4, report.skipped)


class TestLoadImage(unittest.TestCase):

    def test_errors_are_classified(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            missing = Path(tmp) / "missing.jpg"
            broken = Path(tmp) / "broken.jpg"
            broken.write_bytes(b"\x00\x01")
            with self.assertRaises(ImageMissing):
                load_image(missing)
            with self.assertRaises(ImageUnreadable):
                load_image(broken)

    def test_loads_as_rgba(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "ok.jpg"
            path.write_bytes(png_bytes(gradient_image(4)))
            image = load_image(path)
            self.assertEqual(image.mode, "RGBA")
            self.assertEqual(image.size, (64, 48))


if __name__ == "__main__":
    unittest.main()
