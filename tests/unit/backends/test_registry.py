"""
Tests for tracecapture.backends backend lookup.
"""

import unittest

from tracecapture.backends import BACKENDS, get_backend_factory
from tracecapture.backends.cprofile import CProfileBackend


class TestGetBackendFactory(unittest.TestCase):
    """Test cases for get_backend_factory."""

    def test_known_backends(self):
        """Test the registry lists the bundled backends."""
        self.assertEqual(set(BACKENDS), {"cprofile", "torch"})

    def test_factory_creates_fresh_instances(self):
        """Test every factory call returns a new backend."""
        factory = get_backend_factory("cprofile", builtins=False)

        first, second = factory(), factory()

        self.assertIsInstance(first, CProfileBackend)
        self.assertIsNot(first, second)
        self.assertFalse(first.builtins)

    def test_unknown_backend(self):
        """Test an unknown name raises ValueError listing the options."""
        with self.assertRaises(ValueError) as cm:
            get_backend_factory("perf")
        self.assertIn("cprofile", str(cm.exception))


if __name__ == "__main__":
    unittest.main()
