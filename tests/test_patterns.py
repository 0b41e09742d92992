"""
Unit tests for pattern detection
"""
from studyguide.services.patterns import (
    detect,
    find_classifications,
    find_definitions,
    find_lists,
    find_processes,
    split_sentences,
)


class TestDefinitions:
    def test_is_a_template(self):
        """'X is a Y' yields the term without its article"""
        found = find_definitions("The nucleus is the control center of the cell.")
        assert len(found) == 1
        assert found[0].term == "nucleus"
        assert found[0].definition == "control center of the cell"

    def test_each_template(self):
        """are / means / refers to / colon templates"""
        text = (
            "Enzymes are proteins that speed up reactions.\n"
            "Homeostasis means keeping a stable internal environment.\n"
            "Biomass refers to the total mass of living organisms.\n"
            "Catalyst: a substance that speeds up a reaction."
        )
        terms = [d.term for d in find_definitions(text)]
        assert terms == ["Enzymes", "Homeostasis", "Biomass", "Catalyst"]

    def test_one_definition_per_sentence(self):
        """The first matching template wins"""
        found = find_definitions("Osmosis is a process that means water moves across membranes.")
        assert len(found) == 1
        assert found[0].term == "Osmosis"

    def test_long_terms_and_short_definitions_rejected(self):
        """Term at most 6 words, definition at least 3"""
        assert find_definitions("The very long winded name of this thing here is a small protein found in cells.") == []
        assert find_definitions("Water is a liquid.") == []


class TestKeywordDetectors:
    def test_processes(self):
        """Process keywords mark a sentence"""
        found = find_processes("Mitosis involves four stages. Cells are small.")
        assert [p.full_text for p in found] == ["Mitosis involves four stages."]

    def test_classifications(self):
        """Classification keywords mark a sentence"""
        found = find_classifications("Rocks are classified into three groups. Rocks are hard.")
        assert len(found) == 1
        assert found[0].category.startswith("Rocks are classified")


class TestLists:
    def test_list_with_context(self):
        """Runs of two or more list lines keep the preceding text line"""
        text = "The phases of mitosis:\n\n• Prophase\n• Metaphase\n• Anaphase\n\nAfter that, cytokinesis."
        lists = find_lists(text)
        assert len(lists) == 1
        assert lists[0].items == ["Prophase", "Metaphase", "Anaphase"]
        assert lists[0].context == "The phases of mitosis:"

    def test_single_item_is_not_a_list(self):
        """One bullet is not a list"""
        assert find_lists("Intro\n• only one\nOutro") == []


class TestDetect:
    def test_sentences_do_not_cross_lines(self):
        """Headings never merge into the next sentence"""
        assert split_sentences("CELLS\n\nCells divide. They grow!") == ["CELLS", "Cells divide.", "They grow!"]

    def test_detect_is_pure(self):
        """Same input, same report"""
        text = "Enzymes are proteins that speed up reactions.\n• a\n• b"
        assert detect(text) == detect(text)
        assert detect(text).counts() == {
            "definitions": 1, "processes": 0, "classifications": 0, "lists": 1,
        }
