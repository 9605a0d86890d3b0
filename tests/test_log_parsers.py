"""Tests for the log format parsers."""

import unittest

from d3k.log_parsers import ProcessManagerLogParser, StandardLogParser, get_log_parser


class TestStandardLogParser(unittest.TestCase):
    def setUp(self):
        self.parser = StandardLogParser()

    def test_single_line(self):
        lines = self.parser.parse("Server started on port 3000")
        self.assertEqual(len(lines), 1)
        self.assertEqual(lines[0].formatted, "Server started on port 3000")
        self.assertEqual(lines[0].message, "Server started on port 3000")
        self.assertIsNone(lines[0].process_name)

    def test_multiple_lines_keep_order(self):
        lines = self.parser.parse("one\ntwo\nthree\n")
        self.assertEqual([l.message for l in lines], ["one", "two", "three"])

    def test_blank_lines_dropped(self):
        lines = self.parser.parse("\n\nfirst\n   \n\nsecond\n\n")
        self.assertEqual([l.message for l in lines], ["first", "second"])

    def test_empty_and_whitespace(self):
        self.assertEqual(self.parser.parse(""), [])
        self.assertEqual(self.parser.parse("   \n\t\n"), [])

    def test_crlf(self):
        lines = self.parser.parse("a\r\nb\r\n")
        self.assertEqual([l.message for l in lines], ["a", "b"])

    def test_inner_indentation_preserved(self):
        lines = self.parser.parse("Error: boom\n    at foo (a.js:1:1)")
        self.assertEqual(lines[1].message, "    at foo (a.js:1:1)")

    def test_reparse_is_lossless(self):
        text = "  ready - started server\n\nwarn  - slow\nError: x\n"
        first = self.parser.parse(text)
        again = self.parser.parse("\n".join(l.formatted for l in first))
        self.assertEqual([l.message for l in first], [l.message for l in again])


class TestProcessManagerLogParser(unittest.TestCase):
    def setUp(self):
        self.parser = ProcessManagerLogParser()

    def test_foreman_prefix(self):
        [line] = self.parser.parse("web.1  | Started GET / for 127.0.0.1")
        self.assertEqual(line.message, "Started GET / for 127.0.0.1")
        self.assertEqual(line.process_name, "web")
        self.assertEqual(line.formatted, "[WEB] Started GET / for 127.0.0.1")
        self.assertEqual(line.metadata["manager"], "procfile")

    def test_foreman_prefix_with_time(self):
        [line] = self.parser.parse("12:00:01 css.1 | Done in 120ms")
        self.assertEqual(line.process_name, "css")
        self.assertEqual(line.message, "Done in 120ms")
        self.assertEqual(line.metadata["time"], "12:00:01")

    def test_concurrently_prefix(self):
        [line] = self.parser.parse("[js] webpack compiled successfully")
        self.assertEqual(line.process_name, "js")
        self.assertEqual(line.message, "webpack compiled successfully")
        self.assertEqual(line.metadata["manager"], "concurrently")

    def test_level_tag_not_taken_as_process(self):
        [line] = self.parser.parse("[WARN] something odd")
        self.assertIsNone(line.process_name)
        self.assertEqual(line.message, "[WARN] something odd")

    def test_message_never_carries_prefix(self):
        lines = self.parser.parse("web.1 | Error: listen EADDRINUSE\n[js] SyntaxError: x")
        for line in lines:
            self.assertNotIn("|", line.message)
            self.assertFalse(line.message.startswith("[js]"))

    def test_plain_line_passes_through(self):
        [line] = self.parser.parse("Puma starting in single mode...")
        self.assertEqual(line.formatted, "Puma starting in single mode...")
        self.assertIsNone(line.process_name)

    def test_reparse_of_formatted_output_is_lossless(self):
        text = (
            "web | api | ready\n"
            "web | [js] compiled\n"
            "12:00:01 worker.1 | [WARN] queue slow\n"
            "[js] webpack compiled\n"
            "[WARN] disk low\n"
            "Puma starting\n"
        )
        first = self.parser.parse(text)
        self.assertEqual(
            [l.message for l in first],
            ["api | ready", "[js] compiled", "[WARN] queue slow", "webpack compiled", "[WARN] disk low", "Puma starting"],
        )
        again = self.parser.parse("\n".join(l.formatted for l in first))
        self.assertEqual([l.message for l in again], [l.message for l in first])
        self.assertEqual([l.formatted for l in again], [l.formatted for l in first])
        self.assertEqual(again[0].process_name, "web")

    def test_prefix_without_message_kept(self):
        [line] = self.parser.parse("web.1 |")
        self.assertEqual(line.message, "web.1 |")


class TestGetLogParser(unittest.TestCase):
    def test_rails_uses_process_manager(self):
        self.assertIsInstance(get_log_parser("rails"), ProcessManagerLogParser)

    def test_default_is_standard(self):
        self.assertIsInstance(get_log_parser(None), StandardLogParser)
        self.assertIsInstance(get_log_parser("nextjs"), StandardLogParser)


if __name__ == "__main__":
    unittest.main()
