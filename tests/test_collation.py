"""Tests for natural file name ordering."""

from seeker.core.collation import compare_names, natural_key, sort_key


def test_numbers_sort_numerically():
    names = ["file10.txt", "file2.txt", "file1.txt"]
    assert sorted(names, key=sort_key) == ["file1.txt", "file2.txt", "file10.txt"]


def test_case_and_accents_are_ignored():
    assert compare_names("Apple", "apple") == 0
    assert compare_names("Äpfel", "apfel") == 0
    assert compare_names("banana", "Cherry") < 0


def test_sort_key_breaks_ties_on_raw_name():
    assert sorted(["b", "B"], key=sort_key) == ["B", "b"]


def test_digits_sort_before_letters():
    assert compare_names("1abc", "abc") < 0
    assert natural_key("IMG_0010") > natural_key("IMG_9")
