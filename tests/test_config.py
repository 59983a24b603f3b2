import unittest
import json
import os
import sys
import tempfile

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from gamma_index.config import load_config, config_from_dict
from gamma_index.errors import ConfigurationError
from gamma_index.standard_data_model import GammaParameters


class TestConfig(unittest.TestCase):

    def setUp(self):
        self.tmp_dir = tempfile.TemporaryDirectory()
        self.path = os.path.join(self.tmp_dir.name, 'config.json')

    def tearDown(self):
        self.tmp_dir.cleanup()

    def test_load_values(self):
        with open(self.path, 'w') as f:
            json.dump({"dd": 2, "dta": 2.5, "neighborhood_size": 7, "workers": 4, "vectorized": False}, f)

        config = load_config(self.path)

        self.assertEqual(config.parameters, GammaParameters(2.0, 2.5, 7))
        self.assertEqual(config.workers, 4)
        self.assertFalse(config.vectorized)

    def test_missing_keys_use_defaults(self):
        config = config_from_dict({"dta": 1})
        self.assertEqual(config.parameters, GammaParameters(3.0, 1.0, 3))
        self.assertEqual(config.workers, 1)
        self.assertTrue(config.vectorized)

    def test_missing_file(self):
        missing = os.path.join(self.tmp_dir.name, 'missing.json')
        self.assertEqual(load_config(missing).parameters, GammaParameters())
        with self.assertRaises(FileNotFoundError):
            load_config(missing, required=True)

    def test_invalid_json(self):
        with open(self.path, 'w') as f:
            f.write("{dd: 3")
        with self.assertRaises(json.JSONDecodeError):
            load_config(self.path)

    def test_non_integer_neighborhood_is_rejected(self):
        with self.assertRaises(ConfigurationError):
            config_from_dict({"neighborhood_size": 3.7})

    def test_integral_float_neighborhood_is_accepted(self):
        config = config_from_dict({"neighborhood_size": 5.0})
        self.assertEqual(config.parameters.neighborhood_size, 5)
        self.assertIsInstance(config.parameters.neighborhood_size, int)

    def test_values_are_not_coerced(self):
        for values in ({"dd": "three"}, {"dta": "3"}, {"neighborhood_size": "3"},
                       {"dd": True}, {"dta": None}):
            with self.assertRaises(ConfigurationError, msg=str(values)):
                config_from_dict(values)

    def test_vectorized_must_be_a_boolean(self):
        with self.assertRaises(ConfigurationError):
            config_from_dict({"vectorized": "false"})
        self.assertFalse(config_from_dict({"vectorized": False}).vectorized)

    def test_workers_must_be_a_positive_integer(self):
        for workers in (0, -2, 1.5, True, "4"):
            with self.assertRaises(ConfigurationError, msg=repr(workers)):
                config_from_dict({"workers": workers})

    def test_config_must_be_an_object(self):
        with open(self.path, 'w') as f:
            json.dump([3, 3, 3], f)
        with self.assertRaises(ConfigurationError):
            load_config(self.path)


if __name__ == '__main__':
    unittest.main()
