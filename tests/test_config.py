"""
Test cases for configuration loading.
"""

import logging
import os
import shutil
import sys
import tempfile
import unittest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from face_enroll.config import get_default_config, load_config, merge_config, setup_logging


class TestConfig(unittest.TestCase):

    def setUp(self):
        self.test_dir = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.test_dir)

    def _write(self, name, text):
        path = os.path.join(self.test_dir, name)
        with open(path, 'w') as f:
            f.write(text)
        return path

    def test_missing_file_returns_defaults(self):
        config = load_config(os.path.join(self.test_dir, 'missing.yaml'))
        self.assertEqual(config, get_default_config())

    def test_partial_file_is_merged_over_defaults(self):
        path = self._write('config.yaml', "matching:\n  threshold: 0.8\npose:\n  frontal_max_deg: 10\n")

        config = load_config(path)

        self.assertEqual(config['matching']['threshold'], 0.8)
        self.assertEqual(config['pose']['frontal_max_deg'], 10)
        self.assertEqual(config['pose']['directional_min_deg'], 15.0)
        self.assertEqual(config['enrollment']['cycle_delay_ms'], 150)

    def test_invalid_yaml_returns_defaults(self):
        path = self._write('broken.yaml', "matching: [unclosed\n")
        self.assertEqual(load_config(path), get_default_config())

    def test_non_mapping_returns_defaults(self):
        path = self._write('list.yaml', "- a\n- b\n")
        self.assertEqual(load_config(path), get_default_config())

    def test_merge_does_not_mutate_base(self):
        base = get_default_config()
        merged = merge_config(base, {'video': {'display': False}})
        self.assertFalse(merged['video']['display'])
        self.assertTrue(base['video']['display'])
        self.assertEqual(merged['video']['camera_id'], 0)

    def test_shipped_config_matches_defaults(self):
        path = os.path.join(os.path.dirname(__file__), '..', 'config', 'config.yaml')
        config = load_config(path)
        self.assertEqual(config['matching']['threshold'], 0.75)
        self.assertEqual(config['pose']['frontal_max_deg'], 12.0)
        self.assertEqual(config['pose']['directional_min_deg'], 15.0)
        self.assertEqual(config['enrollment']['cycle_delay_ms'], 150)

    def test_setup_logging(self):
        log_file = os.path.join(self.test_dir, 'test.log')
        setup_logging({'logging': {'level': 'DEBUG', 'file': log_file}})
        try:
            logging.getLogger('face_enroll.test').debug("hello")
            self.assertEqual(logging.getLogger().level, logging.DEBUG)
            for handler in logging.getLogger().handlers:
                handler.flush()
            with open(log_file) as f:
                self.assertIn("hello", f.read())
        finally:
            for handler in list(logging.getLogger().handlers):
                logging.getLogger().removeHandler(handler)
                handler.close()


if __name__ == '__main__':
    unittest.main()
