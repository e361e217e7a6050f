"""Tests for cogen/sandbox/checks.py."""

from __future__ import annotations

import pytest

from cogen.sandbox.checks import (
    BANNED_TOKEN,
    MALFORMED_STRUCTURE,
    OVERSIZE,
    SandboxPolicy,
    check_banned_tokens,
    check_size,
    check_structure,
    first_significant_line,
    run_checks,
    token_pattern,
)

POLICY = SandboxPolicy(
    max_size_bytes=64,
    declaration_keywords=("const", "let", "function", "class"),
    banned_tokens=("eval", "innerHTML", "document.write", "Function("),
)


class TestSize:
    def test_within_limit(self):
        assert check_size("const a = 1;", POLICY) is None

    def test_counts_utf8_bytes(self):
        text = "const s = '" + "é" * 30 + "';"
        assert len(text) < 64
        assert check_size(text, POLICY) is not None

    def test_exactly_at_limit(self):
        assert check_size("x" * 64, POLICY) is None
        assert check_size("x" * 65, POLICY) == "65 bytes exceeds limit of 64"


class TestStructure:
    def test_skips_comments_and_blank_lines(self):
        text = "\n// helper\n/* block */\n'use strict';\nconst a = 1;"
        assert first_significant_line(text) == "const a = 1;"
        assert check_structure(text, POLICY) is None

    def test_rejects_non_declaration(self):
        assert check_structure("a = 1;", POLICY) == "does not begin with a declaration keyword"

    def test_keyword_must_be_whole_word(self):
        assert check_structure("constant = 1;", POLICY) is not None

    def test_empty_text(self):
        assert check_structure("   \n// only a comment\n", POLICY) == "no declaration found"

    def test_no_keywords_accepts_any_first_line(self):
        assert check_structure("anything", SandboxPolicy()) is None


class TestBannedTokens:
    @pytest.mark.parametrize(
        "text,token",
        [
            ("const a = eval('1');", "eval"),
            ("const f = x => el.innerHTML = x;", "innerHTML"),
            ("const f = () => document.write('x');", "document.write"),
            ("const f = new Function('return 1');", "Function("),
        ],
    )
    def test_detects(self, text, token):
        assert check_banned_tokens(text, POLICY) == token

    def test_word_boundary(self):
        assert check_banned_tokens("const evaluate = (x) => x;", POLICY) is None
        assert check_banned_tokens("const $eval = 1;", POLICY) is None

    def test_pattern_for_punctuated_token(self):
        pattern = token_pattern("Function(")
        assert pattern.search("new Function(")
        assert pattern.search("MyFunction(") is None


class TestOrdering:
    def test_accepts_valid_candidate(self):
        outcome = run_checks("const double = (x) => x * 2;", POLICY)
        assert outcome.accepted
        assert outcome.checks_run == [OVERSIZE, MALFORMED_STRUCTURE, BANNED_TOKEN]

    def test_oversize_reported_first(self):
        text = "const a = eval('" + "1" * 100 + "');"
        outcome = run_checks(text, POLICY)
        assert outcome.reason == OVERSIZE
        assert outcome.checks_run == [OVERSIZE]

    def test_structure_before_banned_tokens(self):
        outcome = run_checks("eval('1');", POLICY)
        assert outcome.reason == MALFORMED_STRUCTURE

    def test_banned_token_in_well_formed_candidate(self):
        outcome = run_checks("const a = eval('1');", POLICY)
        assert outcome.reason == BANNED_TOKEN
        assert outcome.detail == "eval"


class TestPolicyCopy:
    def test_dict_round_trip_preserves_tuples(self):
        data = POLICY.to_dict()
        assert isinstance(data["banned_tokens"], list)
        assert SandboxPolicy.from_dict(data) == POLICY

    def test_from_dict_defaults(self):
        assert SandboxPolicy.from_dict({}) == SandboxPolicy()
