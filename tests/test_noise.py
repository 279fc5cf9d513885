import pytest

from cliptrail.noise import is_capturable, is_system_noise, is_valid_text, normalize_text


class TestNormalize:
    def test_strips_surrounding_whitespace(self):
        assert normalize_text("\n  hello world \t") == "hello world"

    def test_keeps_inner_whitespace(self):
        assert normalize_text(" a  b\nc ") == "a  b\nc"


class TestIsValidText:
    @pytest.mark.parametrize("text", ["", " ", "\n\t "])
    def test_blank_is_invalid(self, text):
        assert not is_valid_text(text)

    def test_lone_surrogate_is_invalid(self):
        assert not is_valid_text("abc\udc80")

    def test_unicode_is_valid(self):
        assert is_valid_text("日本語のテキスト")


class TestSystemNoise:
    @pytest.mark.parametrize("text", ["", "a", "ab"])
    def test_very_short_is_noise(self, text):
        assert is_system_noise(text)

    @pytest.mark.parametrize(
        "text",
        ['"os/signal"', '"syscall"', '"time"', "import os", "package main", "func main()"],
    )
    def test_short_tooling_artifacts(self, text):
        assert is_system_noise(text)

    def test_ordinary_short_text(self):
        assert not is_system_noise("hello")

    def test_long_text_never_noise(self):
        text = "import " + "x" * 60
        assert len(text) >= 50
        assert not is_system_noise(text)

    def test_boundary_length(self):
        assert is_system_noise("import" + "y" * 43)  # 49 characters
        assert not is_system_noise("import" + "y" * 44)  # 50 characters


class TestIsCapturable:
    def test_minimum_length(self):
        assert not is_capturable("x")
        assert is_capturable("xyz")

    def test_noise_not_capturable(self):
        assert not is_capturable("package foo")
