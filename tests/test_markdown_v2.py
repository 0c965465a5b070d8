from __future__ import annotations

import unittest

from src.app.markdown_v2 import (
    dedupe_self_links,
    escape_link_url,
    escape_markdown_v2,
    fold_text,
    markdown_to_v2,
    to_superscript,
)


class EscapeTests(unittest.TestCase):
    def test_every_reserved_character_gets_one_backslash(self) -> None:
        self.assertEqual(
            escape_markdown_v2("_*[]()~`>#+-=|{}.!"),
            "\\_\\*\\[\\]\\(\\)\\~\\`\\>\\#\\+\\-\\=\\|\\{\\}\\.\\!",
        )

    def test_plain_text_is_unchanged(self) -> None:
        self.assertEqual(escape_markdown_v2("hello world 123"), "hello world 123")

    def test_escaping_twice_is_not_idempotent(self) -> None:
        once = escape_markdown_v2("a.b")
        self.assertEqual(once, "a\\.b")
        self.assertEqual(escape_markdown_v2(once), "a\\\\.b")

    def test_link_url_only_escapes_paren_and_backslash(self) -> None:
        self.assertEqual(escape_link_url("https://x.y/a_(b)"), "https://x.y/a_(b\\)")

    def test_markdown_conversion_escapes_plain_text(self) -> None:
        self.assertEqual(markdown_to_v2("v1.2 (beta)!"), "v1\\.2 \\(beta\\)\\!")

    def test_markdown_conversion_keeps_bold_and_links(self) -> None:
        converted = markdown_to_v2("**bold** see [ref¹](https://t.me/c/1/2)")
        self.assertTrue(converted.startswith("*bold*"))
        self.assertIn("[ref¹](https://t.me/c/1/2)", converted)


class SuperscriptTests(unittest.TestCase):
    def test_single_digits(self) -> None:
        self.assertEqual(to_superscript(0), "⁰")
        self.assertEqual(to_superscript(1), "¹")
        self.assertEqual(to_superscript(9), "⁹")

    def test_multi_digit_is_digitwise(self) -> None:
        self.assertEqual(to_superscript(12), "¹²")
        self.assertEqual(to_superscript(105), "¹⁰⁵")

    def test_negative_rejected(self) -> None:
        with self.assertRaises(ValueError):
            to_superscript(-1)


class DedupeSelfLinksTests(unittest.TestCase):
    def test_repeated_self_links_share_ordinal(self) -> None:
        text = "see [http://a](http://a) and [http://a](http://a) and [x](http://b)"
        self.assertEqual(
            dedupe_self_links(text, "ref"),
            "see [ref¹](http://a) and [ref¹](http://a) and [x](http://b)",
        )

    def test_ordinals_follow_first_seen_order(self) -> None:
        text = "[u2](u2) [u1](u1) [u2](u2) [u3](u3)"
        self.assertEqual(dedupe_self_links(text, "r"), "[r¹](u2) [r²](u1) [r¹](u2) [r³](u3)")

    def test_labelled_links_untouched(self) -> None:
        text = "[label](http://a)"
        self.assertEqual(dedupe_self_links(text, "ref"), text)

    def test_tenth_link_uses_two_glyphs(self) -> None:
        text = " ".join(f"[u{i}](u{i})" for i in range(1, 11))
        self.assertTrue(dedupe_self_links(text, "ref").endswith("[ref¹⁰](u10)"))


class FoldTextTests(unittest.TestCase):
    def test_single_line(self) -> None:
        self.assertEqual(fold_text("abc"), "**>abc||")

    def test_each_line_is_quoted(self) -> None:
        self.assertEqual(fold_text("a\nb\nc"), "**>a\n>b\n>c||")


if __name__ == "__main__":
    unittest.main()
