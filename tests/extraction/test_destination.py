"""Tests for src/extraction/destination.py - host path numbering."""

import os

import pytest

from extraction.destination import plan_destination


def test_single_match_keeps_requested_path():
    assert plan_destination("out.txt", 1, 1) == "out.txt"
    assert plan_destination("/out/file.txt", 1, 1) == "/out/file.txt"


def test_suffix_goes_after_extension():
    assert plan_destination("out.txt", 1, 3) == "out.txt.1"
    assert plan_destination("out.txt", 2, 3) == "out.txt.2"
    assert plan_destination("out.txt", 3, 3) == "out.txt.3"


def test_directory_component_preserved():
    planned = plan_destination(os.path.join("dir", "out.txt"), 3, 3)
    assert os.path.dirname(planned) == "dir"
    assert os.path.basename(planned) == "out.txt.3"


def test_name_without_extension():
    assert plan_destination("id_rsa", 2, 2) == "id_rsa.2"


def test_no_directory_gives_bare_name():
    assert os.path.dirname(plan_destination("user.txt", 1, 2)) == ""


def test_all_destinations_distinct():
    planned = [plan_destination("/out/file.txt", index, 12) for index in range(1, 13)]
    assert len(set(planned)) == 12
    assert planned[0] == os.path.join("/out", "file.txt.1")
    assert planned[-1] == os.path.join("/out", "file.txt.12")


@pytest.mark.parametrize("index, count", [(0, 1), (2, 1), (4, 3), (1, 0)])
def test_out_of_range_index_rejected(index, count):
    with pytest.raises(ValueError, match="match_index"):
        plan_destination("out.txt", index, count)
