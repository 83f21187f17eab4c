import unittest

from arnie.cli.commands import CommandRegistry


async def dummy_handler(args: str) -> bool:  # noqa: ARG001
    return True


class CommandRegistryTests(unittest.TestCase):
    def test_register_and_lookup(self) -> None:
        registry = CommandRegistry()
        registry.register("skills", dummy_handler, "list skills")

        self.assertIn("/skills", registry.names())
        command = registry.get("skills")
        self.assertIsNotNone(command)
        assert command  # for mypy/pylint
        self.assertEqual(command.handler, dummy_handler)
        self.assertEqual(command.usage, "/skills")
        self.assertEqual(registry.help_lines(), ["/skills - list skills"])
        self.assertIsNone(registry.get("/missing"))

    def test_aliases_resolve_to_command(self) -> None:
        registry = CommandRegistry()
        registry.register("/exit", dummy_handler, "leave", aliases=("quit",))

        self.assertIs(registry.get("/quit"), registry.get("/exit"))
        self.assertEqual(registry.names(), ["/exit"])
        self.assertEqual(registry.help_lines(), ["/exit - leave (alias: /quit)"])

    def test_parse_splits_arguments(self) -> None:
        registry = CommandRegistry()
        registry.register(
            "/ask", dummy_handler, "ask", usage="/ask <file>[:start-end] [task]"
        )

        command, args = registry.parse("/ask  a.ts:1-2   rename it ")
        assert command
        self.assertEqual(command.name, "/ask")
        self.assertEqual(args, "a.ts:1-2   rename it")
        self.assertEqual(registry.parse("/ask"), (command, ""))
        self.assertEqual(registry.parse("   "), (None, ""))
        self.assertEqual(
            registry.help_lines(code=True), ["`/ask <file>[:start-end] [task]` - ask"]
        )


if __name__ == "__main__":
    unittest.main()
