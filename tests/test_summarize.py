import logging
import shutil
import tempfile
import unittest
from pathlib import Path

import pandas as pd

from decorr.pipeline import run
from decorr.summarize import SUMMARY_FILENAME, collect_results, main, summarize, write_summary
from tests.synthetic import make_tree, small_config


class TestSummarize(unittest.TestCase):
    def setUp(self):
        self.temp_dir = Path(tempfile.mkdtemp())
        self.images = self.temp_dir / "images"
        self.results = self.temp_dir / "results"
        make_tree(self.images, gains=1, movements=2, exposures=2, frames=4)
        run(small_config(self.images, self.results))

    def tearDown(self):
        for handler in logging.root.handlers[:]:
            logging.root.removeHandler(handler)
            handler.close()
        shutil.rmtree(self.temp_dir)

    def test_collect_results(self):
        df = collect_results(self.results)
        self.assertEqual(len(df), 16)
        self.assertEqual(list(df.columns[:4]), ["gain", "movement", "exposure", "frame"])
        first = df.iloc[0]
        self.assertEqual((first["gain"], first["movement"], first["exposure"]), ("Gain_0", "Move_0", "Exp_0"))
        self.assertEqual(list(df["frame"][:4]), [0, 1, 2, 3])

    def test_summary_columns(self):
        summary = summarize(collect_results(self.results))
        self.assertEqual(len(summary), 4)
        self.assertTrue((summary["num_frames"] == 4).all())
        self.assertIn("MIG_mean", summary.columns)
        self.assertIn("Dist. X (mm)_std", summary.columns)
        self.assertNotIn("Error X (mm)_mean", summary.columns)
        # frames move by 0..3 pixels along x
        self.assertTrue((summary["Pixel Shift X (Columns)_mean"] == 1.5).all())

    def test_write_summary_with_plots(self):
        path = write_summary(self.results, plots=True)
        self.assertEqual(path, self.results / SUMMARY_FILENAME)
        self.assertEqual(len(pd.read_csv(path)), 4)
        self.assertEqual(len(list((self.results / "plots").glob("*.png"))), 4)

    def test_empty_tree(self):
        empty = self.temp_dir / "empty"
        empty.mkdir()
        self.assertTrue(collect_results(empty).empty)
        self.assertIsNone(write_summary(empty))

    def test_main(self):
        self.assertEqual(main(["--results", str(self.results)]), 0)
        self.assertTrue((self.results / SUMMARY_FILENAME).exists())
        self.assertEqual(main(["--results", str(self.temp_dir / "nowhere")]), 1)


if __name__ == '__main__':
    unittest.main()
