import os
import tomllib
import unittest

from support import ROOT

import main
import views


class PackagingTestCase(unittest.TestCase):
    def test_stylesheet_ships_inside_the_views_package(self):
        app_dir = os.path.dirname(os.path.abspath(main.__file__))
        css_path = os.path.join(app_dir, main.StorefrontApp.CSS_PATH)
        self.assertTrue(os.path.isfile(css_path))

        views_dirs = [os.path.abspath(p) for p in views.__path__]
        self.assertIn(os.path.dirname(os.path.dirname(css_path)), views_dirs)

        with open(os.path.join(ROOT, "pyproject.toml"), "rb") as f:
            package_data = tomllib.load(f)["tool"]["setuptools"]["package-data"]
        self.assertIn("styles/*.tcss", package_data["views"])
        self.assertIn("*.sql", package_data["db"])


if __name__ == "__main__":
    unittest.main()
