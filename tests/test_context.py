"""Tests for transcript pairing, snippet derivation and script windowing."""

from __future__ import annotations

import unittest

from rejuv.types import FrameJob, SourceImage, TextDocument
from rejuv.utils.context import (
    CONTEXT_AFTER,
    CONTEXT_BEFORE,
    NO_CONTEXT,
    derive_snippet,
    find_paired_text,
    resolve_script_context,
)


def _image(name: str) -> SourceImage:
    return SourceImage(file_name=name, payload=b"", media_type="image/png")


class PairedTextTest(unittest.TestCase):
    def test_pairs_by_stem_prefix_and_txt_suffix(self) -> None:
        texts = [
            TextDocument("scene01.md", "markdown is ignored"),
            TextDocument("scene01_dialogue.txt", "paired"),
            TextDocument("scene01.txt", "second match"),
        ]

        paired = find_paired_text(_image("scene01.png"), texts)

        self.assertIsNotNone(paired)
        self.assertEqual("scene01_dialogue.txt", paired.name)

    def test_stem_keeps_directories(self) -> None:
        texts = [TextDocument("scene01.txt", "root"), TextDocument("reel2/scene01.txt", "nested")]

        self.assertEqual("reel2/scene01.txt", find_paired_text(_image("reel2/scene01.png"), texts).name)

    def test_missing_pair(self) -> None:
        self.assertIsNone(find_paired_text(_image("scene07.png"), [TextDocument("scene01.txt", "x")]))

    def test_pairing_stem_matches_output_name(self) -> None:
        image = _image("shot.v2.final.png")
        texts = [TextDocument("take.txt", "other"), TextDocument("shot_notes.txt", "paired")]

        paired = find_paired_text(image, texts)

        self.assertEqual("shot", image.stem)
        self.assertEqual("shot_notes.txt", paired.name)
        self.assertEqual("shot_rejuvenated.png", FrameJob(image=image, text_name=paired.name, snippet="").output_name)


class SnippetTest(unittest.TestCase):
    def test_header_lines_are_dropped(self) -> None:
        content = "1\n00:00:01,000 --> 00:00:04,000\nSPEAKER\nWe go tonight.\nNo turning back."

        self.assertEqual("We go tonight.\nNo turning back.", derive_snippet(content))
        self.assertEqual("SPEAKER\nWe go tonight.\nNo turning back.", derive_snippet(content, header_lines=2))

    def test_short_file_yields_empty_snippet(self) -> None:
        self.assertEqual("", derive_snippet("only\ntwo"))


class ScriptContextTest(unittest.TestCase):
    def test_window_around_first_match(self) -> None:
        snippet = "We go tonight. No turning back, not after what they did to the harbour."
        script = "A" * 2000 + snippet + "B" * 3000

        context = resolve_script_context(snippet, script)

        start = 2000 - CONTEXT_BEFORE
        self.assertEqual(script[start : 2000 + CONTEXT_AFTER], context)
        self.assertIn(snippet[:50], context)
        self.assertEqual(CONTEXT_BEFORE + CONTEXT_AFTER, len(context))

    def test_window_is_clamped_to_script_bounds(self) -> None:
        script = "Opening line of the film. " + "x" * 100

        self.assertEqual(script, resolve_script_context("Opening line of the film.", script))

    def test_only_the_first_fifty_characters_are_searched(self) -> None:
        key = "K" * 50
        script = "intro " + key + " and the script continues differently"

        self.assertNotEqual(NO_CONTEXT, resolve_script_context(key + " but the snippet goes on", script))

    def test_sentinel_without_match_or_script(self) -> None:
        self.assertEqual(NO_CONTEXT, resolve_script_context("never said", "something else entirely"))
        self.assertEqual(NO_CONTEXT, resolve_script_context("anything", None))

    def test_resolution_is_deterministic(self) -> None:
        script = "x" * 900 + "the line" + "y" * 900

        self.assertEqual(resolve_script_context("the line", script), resolve_script_context("the line", script))


if __name__ == "__main__":
    unittest.main()
