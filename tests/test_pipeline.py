import logging
import shutil
import tempfile
import unittest
from dataclasses import replace
from pathlib import Path

import cv2
import pandas as pd
import yaml

from decorr.config import Transform
from decorr.errors import InputRootMissingError
from decorr.pipeline import main, process_experiment, run
from decorr.results import RESULTS_FILENAME
from decorr.walker import iter_experiments
from tests.synthetic import make_tree, small_config, textured_frame


class PipelineTestCase(unittest.TestCase):
    def setUp(self):
        self.temp_dir = Path(tempfile.mkdtemp())
        self.images = self.temp_dir / "images"
        self.results = self.temp_dir / "results"
        self.folders = make_tree(self.images)
        self.config = small_config(self.images, self.results)

    def tearDown(self):
        # main() installs root handlers bound to this test's stdout and temp dir
        for handler in logging.root.handlers[:]:
            logging.root.removeHandler(handler)
            handler.close()
        shutil.rmtree(self.temp_dir)

    def csv_files(self) -> list[Path]:
        return sorted(self.results.glob(f"*/*/*/{RESULTS_FILENAME}"))


class TestRun(PipelineTestCase):
    def test_one_csv_per_experiment(self):
        results = run(self.config)
        self.assertEqual(len(results), 8)
        self.assertTrue(all(r.ok for r in results))
        files = self.csv_files()
        self.assertEqual(len(files), 8)
        for path in files:
            lines = path.read_text().splitlines()
            self.assertEqual(len(lines), 4)
            self.assertTrue(lines[0].startswith("Pixel Shift X (Columns),"))

    def test_mirrored_layout(self):
        run(self.config)
        expected = {f.relative_to(self.images) for f in self.folders}
        self.assertEqual({p.parent.relative_to(self.results) for p in self.csv_files()}, expected)

    def test_row_values(self):
        run(self.config)
        df = pd.read_csv(self.results / "Gain_0" / "Move_0" / "Exp_0" / RESULTS_FILENAME)
        self.assertEqual(list(df["Pixel Shift X (Columns)"]), [0, 1, 2])
        self.assertEqual(list(df["Pixel Shift Y (Rows)"]), [0, -1, -2])
        self.assertTrue((df["Confidence (%)"] > 99.99).all())
        self.assertTrue((df["Confidence (%)"] <= 100.0).all())
        x_mm, y_mm = Transform().to_mm(2, -2)
        self.assertAlmostEqual(df["Dist. X (mm)"][2], x_mm)
        self.assertAlmostEqual(df["Dist. Y (mm)"][2], y_mm)
        self.assertTrue(df["Error X (mm)"].isna().all())
        self.assertTrue((df["MIG"] > 0).all())

    def test_second_run_is_identical(self):
        run(self.config)
        first = {p: p.read_bytes() for p in self.csv_files()}
        with self.assertLogs("decorr.utils", level="INFO") as logs:
            run(self.config)
        second = {p: p.read_bytes() for p in self.csv_files()}
        self.assertEqual(first, second)
        self.assertEqual(sum("Folder already exists" in line for line in logs.output), 8)

    def test_missing_root(self):
        with self.assertRaises(InputRootMissingError):
            run(small_config(self.temp_dir / "nowhere", self.results))

    def test_calibration_mode(self):
        run(replace(self.config, calibration_mode=True))
        df = pd.read_csv(self.csv_files()[0])
        self.assertTrue(df["Dist. X (mm)"].isna().all())
        self.assertTrue(df["Dist. Y (mm)"].isna().all())
        self.assertEqual(list(df["Pixel Shift X (Columns)"]), [0, 1, 2])

    def test_ncc_images(self):
        ncc_root = self.temp_dir / "ncc"
        run(replace(self.config, ncc_images_root=ncc_root))
        written = sorted(ncc_root.glob("*/*/*/frame_*.png"))
        self.assertEqual(len(written), 24)


class TestFailures(PipelineTestCase):
    def test_missing_reference_frame(self):
        (self.folders[0] / "frame_0.png").unlink()
        results = run(self.config)
        self.assertEqual(len(results), 8)
        self.assertFalse(results[0].ok)
        self.assertIn("reference", results[0].error)
        self.assertTrue(all(r.ok for r in results[1:]))

    def test_stop_on_error(self):
        (self.folders[0] / "frame_0.png").unlink()
        results = run(replace(self.config, continue_on_error=False))
        self.assertEqual(len(results), 1)
        self.assertFalse(results[0].ok)

    def test_unparsable_name(self):
        (self.folders[1] / "notes.txt").write_text("no index")
        results = run(self.config)
        self.assertFalse(results[1].ok)
        self.assertIn("notes.txt", results[1].error)

    def test_corrupted_frame(self):
        (self.folders[2] / "frame_2.png").write_bytes(b"broken")
        result = process_experiment(list(iter_experiments(self.images))[2], self.config)
        self.assertFalse(result.ok)
        self.assertEqual(result.frames_processed, 2)

    def test_later_frame_with_other_size(self):
        for i in (1, 2):
            cv2.imwrite(str(self.folders[0] / f"frame_{i}.png"), textured_frame(seed=i, width=80, height=60))
        experiment = list(iter_experiments(self.images))[0]
        with self.assertLogs("decorr.pipeline", level="WARNING") as logs:
            result = process_experiment(experiment, self.config)
        self.assertTrue(result.ok)
        self.assertEqual(len(logs.output), 1)
        self.assertIn("frame_1.png is 80x60", logs.output[0])

    def test_unwritable_results(self):
        self.results.mkdir()
        (self.results / "Gain_0").write_text("not a folder")
        results = run(self.config)
        self.assertEqual(sum(not r.ok for r in results), 4)


class TestMain(PipelineTestCase):
    def write_config(self, **extra) -> Path:
        data = {
            "roi": {"width": 16, "height": 16, "top_left_x": 24, "top_left_y": 16},
            "frame": {"width": 64, "height": 48},
            **extra,
        }
        path = self.temp_dir / "bench.yaml"
        path.write_text(yaml.safe_dump(data))
        return path

    def test_success(self):
        code = main(["--config", str(self.write_config()), "--images", str(self.images),
                     "--results", str(self.results)])
        self.assertEqual(code, 0)
        self.assertEqual(len(self.csv_files()), 8)
        self.assertTrue((self.results / "decorr.log").exists())

    def test_paths_from_config_file(self):
        config_path = self.write_config(images_root=str(self.images), results_root=str(self.results))
        self.assertEqual(main(["--config", str(config_path), "--calibration"]), 0)
        df = pd.read_csv(self.csv_files()[0])
        self.assertTrue(df["Dist. X (mm)"].isna().all())

    def test_missing_root(self):
        code = main(["--config", str(self.write_config()), "--images", str(self.temp_dir / "nowhere"),
                     "--results", str(self.results)])
        self.assertEqual(code, 1)

    def test_failed_experiment(self):
        (self.folders[3] / "frame_0.png").unlink()
        code = main(["--config", str(self.write_config()), "--images", str(self.images),
                     "--results", str(self.results)])
        self.assertEqual(code, 1)
        self.assertEqual(len(self.csv_files()), 8)

    def test_invalid_config(self):
        config_path = self.write_config(transform={"txx": 1, "txy": 2, "tyx": 2, "tyy": 4})
        self.assertEqual(main(["--config", str(config_path)]), 1)

    def test_wrongly_typed_config_values(self):
        for extra in ({"reference_index": "0"}, {"frame_pattern": 5}):
            config_path = self.write_config(**extra)
            with self.subTest(extra=extra):
                code = main(["--config", str(config_path), "--images", str(self.images),
                             "--results", str(self.results)])
                self.assertEqual(code, 1)
        self.assertEqual(self.csv_files(), [])


if __name__ == '__main__':
    unittest.main()
