"""
Unit tests for text preprocessing
"""
import pytest

from studyguide.services.preprocessor import (
    clean,
    detect_and_format_lists,
    fix_extraction_issues,
    has_multiple_definitions,
    is_likely_heading,
    is_list_item,
    normalize,
    preprocess,
    split_definitions,
)


class TestHeadingDetection:
    def test_all_caps_heading(self):
        """Short ALL-CAPS lines are headings"""
        assert is_likely_heading("CELL STRUCTURE")

    def test_numbered_heading(self):
        """A numbered title outside a list is a heading"""
        assert is_likely_heading("1. Introduction to Cells", "", "Cells are small.")

    def test_numbered_list_item_is_not_heading(self):
        """A numbered line next to other list items is a list item"""
        assert not is_likely_heading("2. Light Reactions", "1. Light absorption", "3. Calvin Cycle")

    def test_title_case_needs_blank_neighbour(self):
        """Capitalized lines only count as headings beside a blank line"""
        assert is_likely_heading("The Cell Cycle", "", "Cells divide.")
        assert not is_likely_heading("The Cell Cycle", "Some text", "More text")

    def test_sentences_are_not_headings(self):
        """Trailing punctuation, bullets and long lines rule a heading out"""
        assert not is_likely_heading("Cells Divide Often.")
        assert not is_likely_heading("• Key Point")
        assert not is_likely_heading(" ".join(["Word"] * 13))
        assert not is_likely_heading("12345")


class TestDefinitionRuns:
    def test_detects_run_on_definitions(self):
        """Two glossary entries on one line"""
        line = "Osmosis: movement of water across a membrane Diffusion: spreading of particles outward"
        assert has_multiple_definitions(line)
        assert split_definitions(line) == [
            "Osmosis: movement of water across a membrane",
            "Diffusion: spreading of particles outward",
        ]

    def test_single_definition_is_not_split(self):
        """One entry stays intact"""
        line = "Osmosis: movement of water across a membrane"
        assert not has_multiple_definitions(line)
        assert split_definitions(line) == [line]


class TestPreprocess:
    def test_hyphenation_break_is_joined(self):
        """word-\\nword becomes one word"""
        assert "photosynthesis" in fix_extraction_issues("photo-\nsynthesis")

    def test_page_numbers_are_dropped(self):
        """Number-only lines disappear"""
        result = preprocess("Cells are the basic unit of life.\n12\nThey divide often.")
        assert "12" not in result.split("\n")

    def test_disallowed_characters_replaced(self):
        """Control characters go, scientific notation stays"""
        result = preprocess("Temperature \x07rose to 25°C → 30°C with Δ ≥ 5.")
        assert "\x07" not in result
        for symbol in ("°", "→", "Δ", "≥"):
            assert symbol in result

    def test_lists_normalized_to_bullets(self):
        """Every list marker becomes the bullet marker"""
        raw = "The stages are listed below.\n- Prophase\n* Metaphase\n3) Anaphase\n4. Telophase ends division"
        lines = preprocess(raw).split("\n")
        assert "• Prophase" in lines
        assert "• Metaphase" in lines
        assert "• Anaphase" in lines
        assert "• Telophase ends division" in lines

    def test_list_separated_from_prose(self):
        """A blank line sits between prose and the list"""
        result = detect_and_format_lists("Intro text here\n• one\n• two\nAfter text")
        assert result == "Intro text here\n\n• one\n• two\n\nAfter text"

    def test_paragraph_lines_are_joined(self):
        """Soft-wrapped lines are rejoined into one paragraph"""
        raw = "Cells are the basic\nunit of life and they\ncarry out functions."
        assert preprocess(raw) == "Cells are the basic unit of life and they carry out functions."

    def test_heading_gets_its_own_paragraph(self):
        """Headings are set off by blank lines"""
        result = preprocess("CELL BIOLOGY\nCells are the basic unit of life.")
        assert result.split("\n\n")[0] == "CELL BIOLOGY"

    def test_whitespace_normalized(self):
        """Spaces collapse and blank runs cap at one empty line"""
        result = preprocess("Cells   are   small.\n\n\n\n\nThey   divide.")
        assert result == "Cells are small.\n\nThey divide."

    def test_empty_input(self):
        """Empty and None input give empty output"""
        assert preprocess("") == ""
        assert preprocess(None) == ""

    @pytest.mark.parametrize("raw", [
        "",
        "CELL BIOLOGY\nCells are the basic\nunit of life.",
        "1. Introduction\nText follows here.\n\n2. Methods\n- step one\n- step two",
        "Osmosis: movement of water across a membrane Diffusion: spreading of particles outward",
        "photo-\nsynthesis happens in the\nchloroplast. It needs light.\n\n\n7\n",
        "• a\n• b\nThe Key Ideas\n\nSome Title Words Here\nnext line. Another\nline",
        "weird \x00 chars ™ and ✓ marks;;; too many,,, commas!!",
        "   \n\t\n  ",
        "1. First item\n2. Second item\n3. Third item",
    ])
    def test_idempotent(self, raw):
        """Running preprocess twice changes nothing"""
        once = preprocess(raw)
        assert preprocess(once) == once


class TestCleaner:
    def test_repeated_punctuation(self):
        """Runs of marks collapse"""
        assert clean("Wait;;; what.... really!!") == "Wait; what... really!"

    def test_spacing_around_punctuation(self):
        """No space before, one space after"""
        assert clean("Cells ,divide ; often") == "Cells, divide; often"

    def test_normalize_runs_both(self):
        """normalize = clean(preprocess(x))"""
        assert normalize("Cells   divide ,often.") == "Cells divide, often."


class TestListItems:
    def test_markers(self):
        """All supported list markers"""
        for line in ("• a", "- a", "* a", "1. a", "2) a"):
            assert is_list_item(line)
        assert not is_list_item("a - b")
