"""Tests for version comparison and constraint specifiers."""

import pytest

from faber.extensions.errors import CompatibilityError, Err, Ok
from faber.extensions.versions import (
    check_version,
    compare_versions,
    satisfies,
    satisfies_constraint,
    version_tuple,
)


class TestCompareVersions:
    """Test cases for compare_versions"""

    @pytest.mark.parametrize("version", ["0.0.0", "1.2.3", "10.0.1", "2"])
    def test_equal_to_itself(self, version):
        assert compare_versions(version, version) == 0

    @pytest.mark.parametrize(
        "a,b",
        [("1.0.0", "2.0.0"), ("1.2.0", "1.10.0"), ("1.0.9", "1.1.0"), ("0.1.0", "0.1.1")],
    )
    def test_antisymmetric(self, a, b):
        assert compare_versions(a, b) < 0
        assert compare_versions(b, a) > 0

    def test_missing_components_are_zero(self):
        assert compare_versions("1", "1.0.0") == 0
        assert compare_versions("1.2", "1.2.0") == 0

    def test_numeric_not_lexicographic(self):
        assert compare_versions("1.10.0", "1.9.0") > 0

    def test_version_tuple_ignores_suffixes(self):
        assert version_tuple("1.2.3-beta") == (1, 2, 3)
        assert version_tuple("v2.0") == (2, 0, 0)
        assert version_tuple("x.y.z") == (0, 0, 0)


class TestSatisfies:
    """Test cases for constraint specifiers"""

    @pytest.mark.parametrize(
        "constraint,expected",
        [
            (">=1.0.0", True),
            (">1.0.0", False),
            ("<=1.0.0", True),
            ("<1.0.0", False),
            ("==1.0.0", True),
            ("!=1.0.0", False),
            ("1.0.0", True),
            ("1.0.1", False),
        ],
    )
    def test_single_constraint(self, constraint, expected):
        assert satisfies_constraint("1.0.0", constraint) is expected

    def test_greater_equal_not_read_as_greater(self):
        assert satisfies_constraint("2.0.0", ">=2.0.0")

    def test_all_constraints_must_hold(self):
        assert satisfies("1.5.0", ">=1.0.0,<2.0.0")
        assert not satisfies("2.0.0", ">=1.0.0,<2.0.0")
        assert not satisfies("0.9.0", ">=1.0.0,<2.0.0")

    def test_whitespace_and_empty_segments(self):
        assert satisfies("1.5.0", " >=1.0.0 , <2.0.0 ,")


class TestCheckVersion:
    """Test cases for the compatibility gate"""

    def test_compatible(self):
        assert check_version("1.5.0", ">=1.0.0,<2.0.0") == Ok(None)

    @pytest.mark.parametrize("actual", ["2.0.0", "0.9.0"])
    def test_incompatible(self, actual):
        result = check_version(actual, ">=1.0.0,<2.0.0")

        assert isinstance(result, Err)
        assert result.error == CompatibilityError(required=">=1.0.0,<2.0.0", actual=actual)
        assert result.error.tag == "compatibility"
