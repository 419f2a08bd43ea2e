from __future__ import annotations

from pathlib import Path
import tempfile
import textwrap
import unittest

from core.config_loader import find_config_file, load_config_file, normalize_string_list


class LoadConfigFileTests(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.root = Path(self.temp_dir.name)

    def tearDown(self) -> None:
        self.temp_dir.cleanup()

    def test_supports_toml_json_and_yaml(self) -> None:
        (self.root / "a.toml").write_text(
            textwrap.dedent(
                """
                [global]
                jobs = 4
                """
            )
        )
        (self.root / "b.json").write_text('{"global": {"jobs": 4}}')
        (self.root / "c.yml").write_text("global:\n  jobs: 4\n")

        for name in ("a.toml", "b.json", "c.yml"):
            with self.subTest(name=name):
                self.assertEqual(load_config_file(self.root / name), {"global": {"jobs": 4}})

    def test_empty_yaml_is_an_empty_mapping(self) -> None:
        (self.root / "empty.yaml").write_text("")

        self.assertEqual(load_config_file(self.root / "empty.yaml"), {})

    def test_rejects_unknown_suffix(self) -> None:
        (self.root / "config.ini").write_text("[global]\n")

        with self.assertRaises(ValueError):
            load_config_file(self.root / "config.ini")

    def test_rejects_non_mapping_root(self) -> None:
        (self.root / "list.json").write_text("[1, 2]")

        with self.assertRaises(TypeError):
            load_config_file(self.root / "list.json")

    def test_find_config_file(self) -> None:
        self.assertIsNone(find_config_file(self.root, "cmkit"))

        (self.root / "cmkit.yaml").write_text("{}")
        self.assertEqual(find_config_file(self.root, "cmkit"), self.root / "cmkit.yaml")

        (self.root / "cmkit.toml").write_text("")
        with self.assertRaises(ValueError):
            find_config_file(self.root, "cmkit")


class MappingHelperTests(unittest.TestCase):
    def test_normalize_string_list(self) -> None:
        self.assertEqual(normalize_string_list(None), [])
        self.assertEqual(normalize_string_list(" -DFOO=1 "), ["-DFOO=1"])
        self.assertEqual(normalize_string_list(["a", " ", "b"]), ["a", "b"])
        with self.assertRaises(TypeError):
            normalize_string_list([1], field_name="global.extra_build_args")
        with self.assertRaises(TypeError):
            normalize_string_list(3)


if __name__ == "__main__":
    unittest.main()
