"""Unit tests for the Cadence lexer and parser."""

import pytest

from flow_devkit.cadence.errors import InvalidSyntaxError, Position, SyntaxErrorWithSuggestedReplacement
from flow_devkit.cadence.lexer import EOF, IDENTIFIER, INTEGER, tokenize
from flow_devkit.cadence.parser import parse_program


class TestTokenize:
    """Test token kinds and positions."""

    def test_positions(self):
        """Test byte offsets, lines and columns."""
        tokens = tokenize("let x = 1\nlet y = 0x2")

        assert [t.kind for t in tokens[:4]] == [IDENTIFIER, IDENTIFIER, "=", INTEGER]
        assert tokens[1].start == Position(4, 1, 4)
        assert tokens[5].text == "y"
        assert tokens[5].start == Position(14, 2, 4)
        assert tokens[5].newline_before is False
        assert tokens[4].newline_before is True
        assert tokens[7].base == 16
        assert tokens[-1].kind == EOF

    def test_multibyte_offsets(self):
        """Test that offsets count UTF-8 bytes while columns count characters."""
        tokens = tokenize("let é = 1")

        assert tokens[2].kind == "="
        assert tokens[2].start == Position(7, 1, 6)

    def test_longest_punctuation(self):
        """Test that the longest operator wins."""
        assert [t.kind for t in tokenize("a <- b")][:3] == [IDENTIFIER, "<-", IDENTIFIER]

    def test_unterminated_string(self):
        """Test that an unterminated string is a syntax error."""
        with pytest.raises(InvalidSyntaxError):
            tokenize('let s = "abc')


class TestParseProgram:
    """Test parsing complete programs."""

    def test_contract(self):
        """Test a simple contract."""
        program, error = parse_program(
            b"access(all) contract Hello {\n"
            b"    access(all) let greeting: String\n"
            b"    init() { self.greeting = \"Hello\" }\n"
            b"}\n"
        )

        assert error is None
        contract = program.sole_contract_declaration()
        assert contract.identifier.name == "Hello"
        assert [f.identifier.name for f in contract.fields()] == ["greeting"]
        assert [s.kind for s in contract.special_functions()] == ["init"]

    def test_transaction(self):
        """Test a transaction declaration."""
        program, error = parse_program("transaction {\n    prepare(signer: &Account) {}\n}\n")

        assert error is None
        assert program.sole_transaction_declaration() is not None
        assert program.sole_contract_declaration() is None

    def test_legacy_access_is_recoverable(self):
        """Test that `pub` parses with a suggested replacement."""
        program, error = parse_program("pub contract Old {}\n")

        assert program is not None
        assert len(error.errors) == 1
        assert isinstance(error.errors[0], SyntaxErrorWithSuggestedReplacement)
        assert error.errors[0].replacement == "access(all)"

    def test_fatal_syntax_error(self):
        """Test that a non-recoverable error yields no program."""
        program, error = parse_program("access(all) contract {\n")

        assert program is None
        assert error.errors
