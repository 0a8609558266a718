"""Tests for the CodeGenerator."""

import pytest

from otp_verifier.services.code_generator import CodeGenerator


def test_codes_are_fixed_length_digits():
    generator = CodeGenerator(6)
    for _ in range(10_000):
        code = generator.generate()
        assert len(code) == 6
        assert code.isascii() and code.isdigit()


def test_explicit_length_overrides_default():
    generator = CodeGenerator(6)
    assert len(generator.generate(8)) == 8
    assert len(generator.generate(1)) == 1


def test_every_digit_shows_up():
    generator = CodeGenerator(6)
    seen = set("".join(generator.generate() for _ in range(500)))
    assert seen == set("0123456789")


@pytest.mark.parametrize("length", [0, -3])
def test_non_positive_length_rejected(length):
    with pytest.raises(ValueError):
        CodeGenerator(length)
    with pytest.raises(ValueError):
        CodeGenerator().generate(length)
