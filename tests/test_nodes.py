"""Tests for the individual pipeline nodes."""

from __future__ import annotations

import tempfile
import unittest
from pathlib import Path

from rejuv.nodes.character import BIBLE_EXCERPT_CHARS, ResolveCharacter
from rejuv.nodes.character_bible import BIBLE_UNAVAILABLE, SCRIPT_PREFIX_CHARS, BuildCharacterBible
from rejuv.nodes.context import ResolveContext
from rejuv.nodes.describe import VISUAL_ANALYSIS_UNAVAILABLE, AnalyzeScene
from rejuv.nodes.prompt import FALLBACK_PROMPT, NO_STORY_MAP, ComposePrompt
from rejuv.nodes.synthesize import SynthesizeFrame, build_synthesis_parts
from rejuv.types import CharacterMapping, FrameJob, ProductionArchive, RunState, SourceImage, TextDocument
from rejuv.utils.context import NO_CONTEXT
from rejuv.utils.run_logger import RunLogger

from fakes import FakeService, png_bytes


def _image(name: str) -> SourceImage:
    return SourceImage(file_name=name, payload=png_bytes(), media_type="image/png")


def _frame(name: str = "scene01.png", snippet: str = "We go tonight.") -> FrameJob:
    return FrameJob(image=_image(name), text_name=name.replace(".png", ".txt"), snippet=snippet)


class NodeTestCase(unittest.TestCase):
    def setUp(self) -> None:
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        self.runs_dir = Path(tmp.name)
        self.logger = RunLogger(base_dir=self.runs_dir)


class CharacterMappingTest(unittest.TestCase):
    def test_well_formed_payload(self) -> None:
        mapping = CharacterMapping.from_payload(
            {"characterName": " Hero ", "avatarFilename": "avatar_hero.png", "otherCharacters": ["Sidekick"]}
        )

        self.assertEqual(CharacterMapping("Hero", "avatar_hero.png", ("Sidekick",)), mapping)

    def test_malformed_fields_fall_back_to_defaults(self) -> None:
        mapping = CharacterMapping.from_payload(
            {"characterName": 42, "avatarFilename": "", "otherCharacters": "Sidekick"}
        )

        self.assertEqual(CharacterMapping(), mapping)
        self.assertEqual("Unknown", mapping.character_name)

    def test_non_object_payload(self) -> None:
        self.assertEqual(CharacterMapping(), CharacterMapping.from_payload(["Hero"]))
        self.assertEqual(CharacterMapping(), CharacterMapping.from_payload(None))


class BuildCharacterBibleTest(NodeTestCase):
    def test_skipped_without_avatars(self) -> None:
        service = FakeService()
        state = RunState(archive=ProductionArchive(full_script=TextDocument("full.txt", "script")))

        BuildCharacterBible("run", self.logger, service).run(state)

        self.assertEqual("", state.character_bible)
        self.assertEqual([], service.calls)
        self.assertIn("WARNING: Cannot generate Character Bible", state.logs[-1])

    def test_script_prefix_and_avatar_names_are_sent(self) -> None:
        service = FakeService(bible="THE BIBLE")
        script = "S" * SCRIPT_PREFIX_CHARS + "TAIL-NOT-SENT"
        state = RunState(
            archive=ProductionArchive(
                avatars={"avatar_hero.png": _image("avatar_hero.png"), "avatar_foe.png": _image("avatar_foe.png")},
                full_script=TextDocument("full_script.txt", script),
            )
        )

        BuildCharacterBible("run", self.logger, service).run(state)

        prompt = service.prompts("bible")[0]
        self.assertIn("avatar_hero.png, avatar_foe.png", prompt)
        self.assertNotIn("TAIL-NOT-SENT", prompt)
        self.assertEqual("THE BIBLE", state.character_bible)
        self.assertTrue((self.runs_dir / "run" / "BuildCharacterBible-prompt.txt").exists())

    def test_blank_bible_becomes_failure_notice(self) -> None:
        service = FakeService(bible="   ")
        state = RunState(
            archive=ProductionArchive(
                avatars={"avatar_hero.png": _image("avatar_hero.png")},
                full_script=TextDocument("full_script.txt", "script"),
            )
        )

        BuildCharacterBible("run", self.logger, service).run(state)

        self.assertEqual(BIBLE_UNAVAILABLE, state.character_bible)
        self.assertEqual("Character Bible generation failed.", BIBLE_UNAVAILABLE)


class ResolveContextTest(NodeTestCase):
    def test_sentinel_without_script(self) -> None:
        frame = ResolveContext("run", self.logger, None).run(_frame())

        self.assertEqual(NO_CONTEXT, frame.script_context)
        self.assertTrue((self.runs_dir / "run" / frame.log_key / "ResolveContext-response.json").exists())


class FrameLogKeyTest(unittest.TestCase):
    def test_long_stem_is_shortened(self) -> None:
        key = _frame("s" * 300 + ".png").log_key

        self.assertLess(len(key), 64)
        self.assertRegex(key, r"^[A-Za-z0-9._-]+$")

    def test_nested_names_stay_one_directory(self) -> None:
        nested, flat = _frame("reel2/scene01.png").log_key, _frame("scene01.png").log_key

        self.assertNotIn("/", nested)
        self.assertTrue(flat.startswith("scene01-"))
        self.assertNotEqual(nested, flat)


class AnalyzeSceneTest(NodeTestCase):
    def test_blank_analysis_becomes_sentinel(self) -> None:
        frame = AnalyzeScene("run", self.logger, FakeService(analysis="   ")).run(_frame())

        self.assertEqual(VISUAL_ANALYSIS_UNAVAILABLE, frame.visual_analysis)


class ResolveCharacterTest(NodeTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.avatars = {"avatar_hero.png": _image("avatar_hero.png")}

    def _resolve(self, payload, bible: str = "bible"):
        service = FakeService(mapping=payload)
        node = ResolveCharacter("run", self.logger, service, bible=bible, avatars=self.avatars)
        return node.run(_frame()), service

    def test_exact_avatar_name_resolves(self) -> None:
        frame, _ = self._resolve({"characterName": "Hero", "avatarFilename": "avatar_hero.png", "otherCharacters": []})

        self.assertEqual("Hero", frame.mapping.character_name)
        self.assertIs(self.avatars["avatar_hero.png"], frame.avatar)

    def test_unknown_or_differently_cased_avatar_means_no_avatar(self) -> None:
        for name in ("avatar_villain.png", "AVATAR_HERO.PNG"):
            with self.subTest(name=name):
                frame, _ = self._resolve({"characterName": "Hero", "avatarFilename": name, "otherCharacters": []})
                self.assertIsNone(frame.avatar)
                self.assertEqual(name, frame.mapping.avatar_filename)

    def test_bible_excerpt_is_bounded(self) -> None:
        bible = "b" * BIBLE_EXCERPT_CHARS + "OVERFLOW"

        _, service = self._resolve({}, bible=bible)

        prompt = service.prompts("resolve")[0]
        self.assertIn("We go tonight.", prompt)
        self.assertNotIn("OVERFLOW", prompt)


class ComposePromptTest(NodeTestCase):
    def _compose(self, service: FakeService, story_map=None, bible: str = "bible") -> FrameJob:
        frame = _frame()
        frame.mapping = CharacterMapping("Hero", "avatar_hero.png", ("Sidekick", "Dog"))
        frame.visual_analysis = "Two figures on a pier."
        frame.script_context = NO_CONTEXT
        node = ComposePrompt("run", self.logger, service, bible=bible, style="noir", story_map=story_map)
        return node.run(frame)

    def test_prompt_carries_every_ingredient(self) -> None:
        service = FakeService(prompt="  Wide shot on the pier.  ")

        frame = self._compose(service, story_map="Act one ends on the pier.")

        request = service.prompts("compose")[0]
        for fragment in ("Act one ends on the pier.", "We go tonight.", "Hero", "Sidekick, Dog", "noir"):
            self.assertIn(fragment, request)
        self.assertEqual("Wide shot on the pier.", frame.prompt)

    def test_missing_story_map_placeholder(self) -> None:
        service = FakeService()

        self._compose(service)

        self.assertIn(NO_STORY_MAP, service.prompts("compose")[0])

    def test_bible_excerpt_is_short(self) -> None:
        service = FakeService()

        self._compose(service, bible="c" * 500 + "HIDDEN")

        self.assertNotIn("HIDDEN", service.prompts("compose")[0])

    def test_failure_falls_back(self) -> None:
        frame = self._compose(FakeService(failures={"compose": RuntimeError("quota exceeded")}))

        self.assertEqual(FALLBACK_PROMPT, frame.prompt)

    def test_blank_answer_falls_back(self) -> None:
        frame = self._compose(FakeService(prompt="   "))

        self.assertEqual(FALLBACK_PROMPT, frame.prompt)


class SynthesizeFrameTest(NodeTestCase):
    def test_parts_with_avatar(self) -> None:
        avatar, scene = _image("avatar_hero.png"), _image("scene01.png")

        parts = build_synthesis_parts("A prompt", avatar, scene)

        self.assertEqual(3, len(parts))
        self.assertIn("**PROMPT:** A prompt", parts[0])
        self.assertIn("**REFERENCE AVATAR:**", parts[0])
        self.assertIn("**REFERENCE SCENE:**", parts[0])
        self.assertIs(avatar, parts[1])
        self.assertIs(scene, parts[2])

    def test_parts_without_avatar(self) -> None:
        scene = _image("scene01.png")

        parts = build_synthesis_parts("A prompt", None, scene)

        self.assertEqual(2, len(parts))
        self.assertNotIn("REFERENCE AVATAR", parts[0])
        self.assertIs(scene, parts[1])

    def test_output_is_attached(self) -> None:
        service = FakeService(image=b"\x89PNG\r\n\x1a\nfake")
        frame = _frame()
        frame.prompt = "A prompt"

        SynthesizeFrame("run", self.logger, service, aspect_ratio="1:1").run(frame)

        self.assertEqual(b"\x89PNG\r\n\x1a\nfake", frame.output)
        self.assertEqual(["image"], service.kinds())

    def test_unsupported_aspect_ratio(self) -> None:
        with self.assertRaises(ValueError):
            SynthesizeFrame("run", self.logger, FakeService(), aspect_ratio="21:9")


if __name__ == "__main__":
    unittest.main()
