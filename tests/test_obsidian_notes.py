"""Tests for Obsidian note tags, frontmatter and filenames."""

import unittest
from datetime import datetime, timezone

from plannotator.obsidian.notes import (
    BACKLINK,
    extract_tags,
    extract_title,
    generate_filename,
    generate_frontmatter,
    prepare_note_content,
)

FIXED_NOW = datetime(2026, 1, 2, 14, 30, 5, 123000, tzinfo=timezone.utc)


class ExtractTagsTests(unittest.TestCase):
    """Tags come from the first H1 and code fence languages."""

    def test_title_words_and_fence_language(self) -> None:
        tags = extract_tags("# Plan: Auth Migration\n```typescript\nconst a = 1;\n```")
        self.assertEqual(tags, ["plan", "auth", "migration", "typescript"])

    def test_stop_words_short_tokens_and_punctuation(self) -> None:
        tags = extract_tags("# Implementation Plan: Add the OAuth2 flow for an API, v2!")
        self.assertEqual(tags, ["plan", "add", "oauth2", "flow"])

    def test_ignored_languages_and_duplicates(self) -> None:
        markdown = "\n".join(
            [
                "# Refactor",
                "```json", "{}", "```",
                "```YAML", "a: 1", "```",
                "```Python", "x = 1", "```",
                "```python", "y = 2", "```",
                "```md", "text", "```",
                "```sql", "select 1", "```",
            ]
        )
        self.assertEqual(extract_tags(markdown), ["plan", "refactor", "python", "sql"])

    def test_caps_at_six_tags(self) -> None:
        markdown = "# Build shiny new dashboard widgets quickly\n" + "\n".join(
            f"```{lang}\n```" for lang in ("rust", "go", "ruby", "bash")
        )
        tags = extract_tags(markdown)
        self.assertEqual(len(tags), 6)
        self.assertEqual(tags[:4], ["plan", "build", "shiny", "new"])
        self.assertEqual(tags[4:], ["rust", "go"])

    def test_only_top_level_heading_counts(self) -> None:
        self.assertEqual(extract_tags("## Secondary heading\nbody"), ["plan"])
        self.assertIsNone(extract_title("## Secondary heading"))
        self.assertEqual(extract_title("intro\n# Plan: Cache Layer\n# Other"), "Cache Layer")


class FrontmatterTests(unittest.TestCase):
    def test_frontmatter_block(self) -> None:
        block = generate_frontmatter(["plan", "Auth"], FIXED_NOW)
        self.assertEqual(
            block,
            "---\ncreated: 2026-01-02T14:30:05.123Z\nsource: plannotator\ntags: [plan, auth]\n---",
        )

    def test_note_content_layout(self) -> None:
        plan = "# Plan: Cache Layer\n\nSteps"
        content = prepare_note_content(plan, FIXED_NOW)
        frontmatter, backlink, body = content.split("\n\n", 2)
        self.assertTrue(frontmatter.startswith("---\ncreated: "))
        self.assertTrue(frontmatter.endswith("---"))
        self.assertEqual(backlink, BACKLINK)
        self.assertEqual(body, plan)


class FilenameTests(unittest.TestCase):
    def test_deterministic_filename(self) -> None:
        name = generate_filename("# Plan: Auth Migration\n", FIXED_NOW)
        self.assertEqual(name, "Auth Migration - Jan 2, 2026 2-30pm.md")
        self.assertEqual(name, generate_filename("# Plan: Auth Migration\n", FIXED_NOW))

    def test_twelve_hour_clock(self) -> None:
        midnight = datetime(2025, 12, 31, 0, 5)
        noon = datetime(2025, 3, 9, 12, 0)
        morning = datetime(2025, 3, 9, 9, 7)
        self.assertTrue(generate_filename("# X Y Z", midnight).endswith("Dec 31, 2025 12-05am.md"))
        self.assertTrue(generate_filename("# X Y Z", noon).endswith("Mar 9, 2025 12-00pm.md"))
        self.assertTrue(generate_filename("# X Y Z", morning).endswith("Mar 9, 2025 9-07am.md"))

    def test_default_title(self) -> None:
        self.assertTrue(generate_filename("no heading here", FIXED_NOW).startswith("Plan - "))
        self.assertTrue(generate_filename('# Plan: <>:"/\\|?*', FIXED_NOW).startswith("Plan - "))

    def test_invalid_characters_removed_and_truncated(self) -> None:
        title = 'Fix a/b: "quoted" <tags> | pipes? *stars*   and\\slashes ' + "x" * 80
        name = generate_filename(f"# {title}", FIXED_NOW)
        stem = name.split(" - ")[0]
        for char in '<>:"/\\|?*':
            self.assertNotIn(char, stem)
        self.assertNotIn("  ", stem)
        self.assertLessEqual(len(stem), 50)
        self.assertTrue(stem.startswith("Fix ab quoted tags pipes stars and"))


if __name__ == "__main__":
    unittest.main()
