from __future__ import annotations

import unittest

from src.app.handlers.reply_formatting import (
    QUERY_SNIPPET_CHARS,
    TELEGRAM_TEXT_LIMIT,
    ReplyComposer,
    format_query_results,
    repair_links,
)
from src.storage.models import IMAGE_CONTENT_PREFIX, MessageRecord


def _record(message_id: int, content: str, user_name: str = "alice") -> MessageRecord:
    return MessageRecord.create(
        group_id=-1001234,
        message_id=message_id,
        user_name=user_name,
        content=content,
        timestamp=1_700_000_000_000 + message_id,
        group_name="Test group",
    )


class RepairLinksTests(unittest.TestCase):
    def test_known_mangled_hosts_are_fixed(self) -> None:
        self.assertEqual(repair_links("https://tme.cat/1/2"), "https://t.me/c/1/2")
        self.assertEqual(repair_links("https://t.me/c/c/1/2"), "https://t.me/c/1/2")

    def test_clean_text_is_unchanged(self) -> None:
        self.assertEqual(repair_links("https://t.me/c/1/2"), "https://t.me/c/1/2")


class ReplyComposerTests(unittest.TestCase):
    def setUp(self) -> None:
        self.composer = ReplyComposer("gemini-2.0-flash", link_prefix="ref", footer_url="https://github.com/x/y")

    def test_stage_order_is_fixed(self) -> None:
        names = [stage.name for stage in self.composer.body_stages()]
        self.assertEqual(names, ["repair_links", "dedupe_links", "to_markdown_v2", "fold"])

    def test_compose_summary_runs_full_pipeline(self) -> None:
        raw = "Today: [http://t.me/c/1/2](http://t.me/c/1/2) done."
        summary = self.composer.compose_summary(raw)

        header, body = summary.split("\n", 1)
        self.assertEqual(header, "Group summary below, brought to you by gemini\\-2\\.0\\-flash")
        self.assertTrue(body.startswith("**>Today: "))
        self.assertIn("[ref¹](http://t.me/c/1/2)", body)
        self.assertIn("done\\.||", body)
        self.assertTrue(summary.endswith("||\n[Source code](https://github.com/x/y)"))

    def test_model_markdown_becomes_markdown_v2_formatting(self) -> None:
        answer = self.composer.compose_answer("**Release** is out.")
        self.assertIn("*Release*", answer)
        self.assertNotIn("**Release**", answer)
        self.assertIn("out\\.", answer)

    def test_repair_runs_before_dedupe(self) -> None:
        answer = self.composer.compose_answer("[tme.cat/1/2](tme.cat/1/2)")
        self.assertIn("[ref¹](t.me/c/1/2)", answer)
        self.assertNotIn("tme.cat", answer)

    def test_multiline_answer_is_folded_per_line(self) -> None:
        answer = self.composer.compose_answer("line one\n\nline-two")
        self.assertTrue(answer.startswith("**>line one\n>"))
        self.assertTrue(answer.endswith(">line\\-two||"))

    def test_footer_omitted_without_repo_url(self) -> None:
        composer = ReplyComposer("m", footer_url="")
        self.assertFalse(composer.compose_summary("hi").endswith(")"))
        self.assertEqual(composer.footer(), "")


class FormatQueryResultsTests(unittest.TestCase):
    def test_single_chunk_with_header_and_links(self) -> None:
        chunks = format_query_results([_record(5, "hello.")], "Search results:")
        self.assertEqual(len(chunks), 1)
        self.assertEqual(
            chunks[0],
            "Search results:\nalice: hello\\. [link](https://t.me/c/1234/5)",
        )

    def test_images_render_as_placeholder(self) -> None:
        chunks = format_query_results([_record(6, IMAGE_CONTENT_PREFIX + "AAAA")], "h")
        self.assertIn("\\[image\\]", chunks[0])
        self.assertNotIn("base64", chunks[0])

    def test_long_content_is_truncated(self) -> None:
        chunks = format_query_results([_record(7, "x" * (QUERY_SNIPPET_CHARS + 100))], "h")
        self.assertIn("x" * QUERY_SNIPPET_CHARS + "\\.\\.\\.", chunks[0])
        self.assertNotIn("x" * (QUERY_SNIPPET_CHARS + 1), chunks[0])

    def test_results_split_under_message_limit(self) -> None:
        records = [_record(i, "y" * 400) for i in range(30)]
        chunks = format_query_results(records, "h")
        self.assertGreater(len(chunks), 1)
        for chunk in chunks:
            self.assertLessEqual(len(chunk), TELEGRAM_TEXT_LIMIT)
        self.assertEqual(sum(chunk.count("[link]") for chunk in chunks), 30)


if __name__ == "__main__":
    unittest.main()
