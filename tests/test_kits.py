from __future__ import annotations

import dataclasses
import unittest

from cmkit.kits import FAST_GENERATOR, Kit, ShellDescriptor, build_kit, classic_generator


def finder(paths):
    return lambda name: paths.get(name)


class BuildKitTests(unittest.TestCase):
    def test_prefers_ninja_when_present(self) -> None:
        kit = build_kit(
            "unix-gcc",
            exec_finder=finder({"cmake": "/usr/bin/cmake", "ninja": "/usr/bin/ninja"}),
        )

        self.assertEqual(kit.generator, FAST_GENERATOR)
        self.assertEqual(kit.configure_tool_path, "/usr/bin/cmake")

    def test_falls_back_to_given_generator(self) -> None:
        kit = build_kit("msys2-ucrt64", exec_finder=finder({}), fallback_generator="MSYS Makefiles")

        self.assertEqual(kit.generator, "MSYS Makefiles")

    def test_falls_back_to_host_classic_generator(self) -> None:
        kit = build_kit("bare", exec_finder=finder({}))

        self.assertEqual(kit.generator, classic_generator())

    def test_missing_tools_are_none(self) -> None:
        kit = build_kit("partial", exec_finder=finder({"ctest": "/opt/ctest"}))

        self.assertIsNone(kit.configure_tool_path)
        self.assertEqual(kit.test_tool_path, "/opt/ctest")
        self.assertIsNone(kit.language_server_path)

    def test_kit_is_immutable(self) -> None:
        kit = build_kit("frozen", exec_finder=finder({}))

        with self.assertRaises(dataclasses.FrozenInstanceError):
            kit.generator = "Ninja"  # type: ignore[misc]

    def test_environment_overlay_appends_compilers(self) -> None:
        kit = build_kit(
            "unix-clang",
            environment_delta=[("PATH", "/opt/llvm/bin")],
            exec_finder=finder({}),
            c_compiler="/usr/bin/clang",
            cxx_compiler="/usr/bin/clang++",
        )

        self.assertEqual(
            kit.environment_overlay(),
            (("PATH", "/opt/llvm/bin"), ("CC", "/usr/bin/clang"), ("CXX", "/usr/bin/clang++")),
        )
        self.assertEqual(kit.environment_delta, (("PATH", "/opt/llvm/bin"),))


class ClassicGeneratorTests(unittest.TestCase):
    def test_per_host(self) -> None:
        self.assertEqual(classic_generator("linux"), "Unix Makefiles")
        self.assertEqual(classic_generator("darwin"), "Unix Makefiles")
        self.assertEqual(classic_generator("windows"), "MinGW Makefiles")


class KitFromMappingTests(unittest.TestCase):
    def test_parses_hand_authored_kit(self) -> None:
        kit = Kit.from_mapping(
            "custom",
            {
                "configure_tool_path": "/opt/cmake/bin/cmake",
                "environment": {"PATH": "/opt/bin", "CC": "cc"},
                "shell": {"program": "/bin/zsh", "args": ["-l"]},
                "command_prefix": ["ssh", "builder"],
            },
            host="linux",
        )

        self.assertEqual(kit.generator, "Unix Makefiles")
        self.assertEqual(kit.environment_delta, (("PATH", "/opt/bin"), ("CC", "cc")))
        self.assertEqual(kit.shell, ShellDescriptor(program="/bin/zsh", args=("-l",)))
        self.assertEqual(kit.command_prefix, ("ssh", "builder"))
        self.assertIsNone(kit.test_tool_path)

    def test_accepts_assignment_list_for_environment(self) -> None:
        kit = Kit.from_mapping("custom", {"generator": "Ninja", "environment": ["A=1", ["B", "2"]]})

        self.assertEqual(kit.environment_delta, (("A", "1"), ("B", "2")))

    def test_rejects_unknown_keys(self) -> None:
        with self.assertRaises(ValueError) as ctx:
            Kit.from_mapping("custom", {"generator": "Ninja", "toolset": "v143"})

        self.assertIn("toolset", str(ctx.exception))

    def test_rejects_shell_without_program(self) -> None:
        with self.assertRaises(ValueError):
            Kit.from_mapping("custom", {"shell": {"args": ["-l"]}})


class DescribeTests(unittest.TestCase):
    def test_lists_every_tool(self) -> None:
        kit = Kit(name="wsl-Ubuntu", generator="Unix Makefiles", command_prefix=("wsl", "-d", "Ubuntu"))

        text = kit.describe()

        self.assertIn("kit wsl-Ubuntu:", text)
        self.assertIn("configure_tool_path: <none>", text)
        self.assertIn("command_prefix: wsl -d Ubuntu", text)


if __name__ == "__main__":
    unittest.main()
