"""Tests for browser event validation and rendering."""

import unittest

from d3k.browser_events import (
    clean_console_formatting,
    render_event,
    strip_console_css,
    validate_event,
)
from d3k.exceptions import InvalidEventError


class TestValidation(unittest.TestCase):
    def test_valid(self):
        self.assertEqual(validate_event({"type": "console", "message": "hi", "level": "log"}), [])

    def test_missing_fields(self):
        errors = validate_event({"type": "console"})
        self.assertEqual(len(errors), 1)
        self.assertIn("message", errors[0])

    def test_unknown_type(self):
        self.assertTrue(validate_event({"type": "telepathy", "message": "x"}))

    def test_bad_status(self):
        self.assertTrue(validate_event({"type": "network", "message": "x", "status": "500"}))
        self.assertTrue(validate_event({"type": "network", "message": "x", "status": 42}))

    def test_not_an_object(self):
        self.assertTrue(validate_event(["console", "hi"]))


class TestRender(unittest.TestCase):
    def test_console(self):
        self.assertEqual(
            render_event({"type": "console", "level": "error", "message": "Uncaught TypeError"}),
            ("BROWSER", "[CONSOLE ERROR] Uncaught TypeError"),
        )

    def test_console_default_level(self):
        self.assertEqual(render_event({"type": "console", "message": "hi"}), ("BROWSER", "[CONSOLE LOG] hi"))

    def test_console_css_stripped(self):
        source, message = render_event({
            "type": "console",
            "message": "%c[App]%c ready color: rgb(1, 2, 3) color: inherit",
        })
        self.assertEqual(message, "[CONSOLE LOG] [App] ready")

    def test_network(self):
        event = {"type": "network", "method": "GET", "status": 404, "url": "/api/x", "message": "Not Found"}
        self.assertEqual(render_event(event), ("NETWORK", "GET 404 /api/x Not Found"))

    def test_sources(self):
        for event_type, source in (
            ("error", "ERROR"),
            ("dom", "DOM"),
            ("cdp", "CDP"),
            ("screenshot", "SCREENSHOT"),
            ("interaction", "INTERACTION"),
        ):
            self.assertEqual(render_event({"type": event_type, "message": "m"}), (source, "m"))

    def test_navigation_with_url(self):
        self.assertEqual(
            render_event({"type": "navigation", "url": "http://localhost:3000/a", "message": "loaded"}),
            ("NAVIGATION", "http://localhost:3000/a loaded"),
        )

    def test_invalid_raises(self):
        with self.assertRaises(InvalidEventError) as ctx:
            render_event({"type": "console"})
        self.assertTrue(ctx.exception.errors)


class TestConsoleCleanup(unittest.TestCase):
    def test_vercel_analytics(self):
        message = (
            "[CONSOLE LOG] %c[Vercel Web Analytics]%c Debug mode is enabled by default in development. "
            "No requests will be sent to the server. color: rgb(120, 120, 120) color: inherit"
        )
        self.assertEqual(
            clean_console_formatting(message),
            "[CONSOLE LOG] [Vercel Web Analytics] Debug mode is enabled by default in development. "
            "No requests will be sent to the server.",
        )

    def test_css_before_json(self):
        message = (
            "[CONSOLE LOG] %c[Vercel Speed Insights]%c [vitals] color: rgb(120, 120, 120) color: inherit "
            '{"type":"object","description":"Object","overflow":false}'
        )
        self.assertEqual(
            clean_console_formatting(message),
            '[CONSOLE LOG] [Vercel Speed Insights] [vitals] {"type":"object","description":"Object","overflow":false}',
        )

    def test_untouched(self):
        self.assertEqual(clean_console_formatting("[CONSOLE LOG] plain"), "[CONSOLE LOG] plain")
        self.assertEqual(clean_console_formatting("[CONSOLE ERROR] %c x"), "[CONSOLE ERROR] %c x")
        self.assertEqual(strip_console_css("no directives"), "no directives")


if __name__ == "__main__":
    unittest.main()
