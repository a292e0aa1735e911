"""Unit tests for the SQL safety gate."""

from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest
import yaml

# Add backend to path for imports
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from querypilot.security.sql_guard import (
    EMPTY_OR_NOT_STRING,
    FORBIDDEN_KEYWORDS,
    MULTIPLE_STATEMENTS,
    NO_LIMIT,
    NOT_A_SELECT,
    POSSIBLE_CARTESIAN_PRODUCT,
    ComplexityReport,
    Verdict,
    assess_complexity,
    describe_reason,
    extract_sql,
    format_sql,
    is_safe_sql,
    normalize_sql,
    validate_sql,
)

GATE_CASES = Path(__file__).resolve().parent.parent / "schema" / "gate_cases.yaml"


class TestScenarios:
    """End-to-end verdicts for representative queries."""

    def test_select_with_trailing_semicolon_admitted(self):
        verdict = validate_sql("SELECT * FROM users;")
        assert verdict.admitted
        assert verdict.reasons == ()

    def test_stacked_drop_rejected(self):
        verdict = validate_sql("select name from users; drop table users;")
        assert not verdict.admitted
        assert MULTIPLE_STATEMENTS in verdict.reasons
        assert "FORBIDDEN_KEYWORD:drop" in verdict.reasons

    def test_update_rejected_as_not_select(self):
        verdict = validate_sql("UPDATE users SET name='x'")
        assert not verdict.admitted
        assert verdict.reasons == (NOT_A_SELECT,)

    def test_updated_at_column_admitted(self):
        assert validate_sql("select updated_at from orders limit 10").admitted

    def test_union_select_rejected(self):
        verdict = validate_sql("select * from a union select * from secrets")
        assert not verdict.admitted
        assert verdict.reasons == ("SUSPICIOUS_PATTERN:union_select",)

    def test_missing_limit_is_advisory_only(self):
        sql = "select name from users"
        assert validate_sql(sql).admitted
        report = assess_complexity(sql)
        assert report.warnings == (NO_LIMIT,)
        assert report.is_valid is False


class TestEmptyInput:
    """Empty or non-textual input is rejected, never raised."""

    @pytest.mark.parametrize("candidate", ["", None, 42, b"select 1", ["select 1"]])
    def test_non_text_rejected(self, candidate):
        verdict = validate_sql(candidate)
        assert not verdict.admitted
        assert verdict.reasons == (EMPTY_OR_NOT_STRING,)

    @pytest.mark.parametrize("candidate", ["   ", "\n\t", "-- just a comment", "/* only */", "/* a */ -- b"])
    def test_blank_after_normalization_rejected(self, candidate):
        assert validate_sql(candidate).reasons == (EMPTY_OR_NOT_STRING,)


class TestLeadingSelect:
    """Only the start of the normalized text is checked for ``select``."""

    @pytest.mark.parametrize("sql", [
        "delete from users",
        "with t as (select 1) select * from t",
        "explain select * from users",
        "(select 1)",
        "show tables",
    ])
    def test_non_select_rejected(self, sql):
        verdict = validate_sql(sql)
        assert verdict.reasons == (NOT_A_SELECT,)

    def test_case_and_whitespace_ignored(self):
        assert validate_sql("\n   SeLeCt   id\nFROM   t").admitted

    def test_leading_comment_stripped(self):
        assert validate_sql("/* monthly report */ select count(*) from orders").admitted
        assert validate_sql("-- report\nselect count(*) from orders").admitted

    def test_non_leading_selected_word(self):
        assert validate_sql("select * from updated_orders").admitted
        assert validate_sql("select selected from t").admitted


class TestForbiddenKeywords:
    """Forbidden keywords are matched as whole words only."""

    @pytest.mark.parametrize("keyword", FORBIDDEN_KEYWORDS)
    def test_standalone_keyword_rejected(self, keyword):
        verdict = validate_sql(f"select * from t where x = 1 {keyword.upper()} y")
        assert not verdict.admitted
        assert f"FORBIDDEN_KEYWORD:{keyword}" in verdict.reasons

    @pytest.mark.parametrize("sql", [
        "select updated_at from orders",
        "select update_count from stats",
        "select created_by from docs",
        "select dropped from flags",
        "select * from inserts_log",
        "select executed_at from jobs",
        "select merged, altered_on from history",
        "select grant_id from grants_table",
    ])
    def test_identifier_substring_admitted(self, sql):
        assert validate_sql(sql).admitted

    def test_comment_between_letters_separates_tokens(self):
        # The server reads ``dr/**/op`` as two identifiers, never as DROP
        assert normalize_sql("select * from t where dr/**/op = 1") == "select * from t where dr op = 1"
        assert validate_sql("select * from t where dr/**/op = 1").admitted

    def test_line_marker_inside_block_comment(self):
        verdict = validate_sql("select 1 /* -- */ ; delete from t")
        assert not verdict.admitted
        assert verdict.reasons == ("FORBIDDEN_KEYWORD:delete", "SUSPICIOUS_PATTERN:stacked_delete")

    def test_comment_marker_formed_by_removal(self):
        verdict = validate_sql("select 1 -/**/- 1; delete from t")
        assert "FORBIDDEN_KEYWORD:delete" in verdict.reasons

    def test_nested_block_comment(self):
        verdict = validate_sql("select 1 /* /* */ -- */ ; delete from t")
        assert "FORBIDDEN_KEYWORD:delete" in verdict.reasons

    def test_unterminated_block_comment_is_scanned(self):
        verdict = validate_sql("select 1 /* ; delete from t")
        assert "FORBIDDEN_KEYWORD:delete" in verdict.reasons

    @pytest.mark.parametrize("sql", [
        "select '--'; delete from t",
        "select '/*'; delete from t /* */",
        "select E'\\'--'; delete from t",
        "select $$--$$; delete from t",
        "select name'--\\'; delete from t",
        'select 1 as "--"; delete from t',
    ])
    def test_comment_markers_inside_literals_are_not_comments(self, sql):
        verdict = validate_sql(sql)
        assert "FORBIDDEN_KEYWORD:delete" in verdict.reasons

    def test_keyword_hidden_inside_comment_is_removed(self):
        assert validate_sql("select * /* drop */ from t").admitted
        assert validate_sql("select * from t -- ; delete from t").admitted

    def test_keyword_outside_comment_still_caught(self):
        verdict = validate_sql("select * /* harmless */ from t; /* x */ drop table t")
        assert "FORBIDDEN_KEYWORD:drop" in verdict.reasons

    def test_reasons_follow_keyword_list_order(self):
        verdict = validate_sql("select 1 from t where drop = insert")
        keyword_reasons = [r for r in verdict.reasons if r.startswith("FORBIDDEN_KEYWORD")]
        assert keyword_reasons == ["FORBIDDEN_KEYWORD:insert", "FORBIDDEN_KEYWORD:drop"]


class TestSuspiciousPatterns:
    """Stacked-query and UNION patterns are screened on the normalized text."""

    @pytest.mark.parametrize("sql,pattern_id", [
        ("select 1; select 2", "stacked_select"),
        ("select 1;\n  SELECT 2", "stacked_select"),
        ("select 1 ;drop table t", "stacked_drop"),
        ("select 1; delete from t", "stacked_delete"),
        ("select 1; update t set a = 1", "stacked_update"),
        ("select 1; insert into t values (1)", "stacked_insert"),
        ("select a from t UNION ALL select b from u", "union_select"),
    ])
    def test_pattern_detected(self, sql, pattern_id):
        verdict = validate_sql(sql)
        assert not verdict.admitted
        assert f"SUSPICIOUS_PATTERN:{pattern_id}" in verdict.reasons

    def test_union_without_from_admitted(self):
        assert validate_sql("select 1 union select 2").admitted

    def test_stacked_select_with_single_semicolon(self):
        verdict = validate_sql("select 1; select 2")
        assert verdict.reasons == ("SUSPICIOUS_PATTERN:stacked_select",)


class TestMultipleStatements:
    """More than one semicolon in the original text is always rejected."""

    def test_single_trailing_semicolon_admitted(self):
        assert validate_sql("select 1;").admitted

    @pytest.mark.parametrize("sql", [
        "select 1;;",
        "select ';' as a, ';' as b from t",
        "select 1; ; ",
    ])
    def test_two_or_more_rejected(self, sql):
        verdict = validate_sql(sql)
        assert not verdict.admitted
        assert MULTIPLE_STATEMENTS in verdict.reasons

    def test_semicolons_counted_before_comment_stripping(self):
        verdict = validate_sql("select 1 /* ; */ from t -- ;")
        assert verdict.reasons == (MULTIPLE_STATEMENTS,)

    def test_reason_order(self):
        verdict = validate_sql("select name from users; drop table users;")
        assert verdict.reasons == (
            "FORBIDDEN_KEYWORD:drop",
            "SUSPICIOUS_PATTERN:stacked_drop",
            MULTIPLE_STATEMENTS,
        )
        assert verdict.first_reason == "FORBIDDEN_KEYWORD:drop"


class TestNormalization:
    """Tests for normalize_sql."""

    def test_strips_comments_and_collapses_whitespace(self):
        sql = "SELECT  id, -- the key\n  Name /* display\nname */ FROM\tUsers"
        assert normalize_sql(sql) == "select id, name from users"

    def test_block_comments_are_non_greedy(self):
        assert normalize_sql("select /* a */ x /* b */ from t") == "select x from t"

    @pytest.mark.parametrize("sql", [
        "SELECT  id, -- c\n name FROM t",
        "select -/**/- drop\nfrom t",
        "/*/**/*/ select 1",
        "select '--' as dashes",
        "select $tag$ /* x */ $tag$, e'\\'--' -- c",
        "select 1 /* unterminated -- c\n x",
        "  MiXeD   CaSe  ",
        "",
    ])
    def test_idempotent(self, sql):
        once = normalize_sql(sql)
        assert normalize_sql(once) == once

    def test_comment_becomes_token_separator(self):
        assert normalize_sql("select 1 -/**/- drop\nfrom t") == "select 1 - - drop from t"

    def test_nested_block_comment_removed_whole(self):
        assert normalize_sql("/* outer /* inner */ still outer */ select 1") == "select 1"

    def test_literals_are_kept(self):
        assert normalize_sql("SELECT '-- Not A Comment' AS x -- gone") == "select '-- not a comment' as x"

    def test_does_not_mutate_input(self):
        sql = "SELECT 1 -- c"
        normalize_sql(sql)
        assert sql == "SELECT 1 -- c"


class TestAssessComplexity:
    """Tests for assess_complexity."""

    def test_limit_present(self):
        report = assess_complexity("select * from t LIMIT 20")
        assert report == ComplexityReport(is_valid=True, warnings=())

    def test_limit_without_number_warns(self):
        assert NO_LIMIT in assess_complexity("select * from t limit all").warnings

    def test_join_without_on(self):
        report = assess_complexity("select * from a join b limit 5")
        assert report.warnings == (POSSIBLE_CARTESIAN_PRODUCT,)
        assert not report.is_valid

    def test_join_with_on(self):
        report = assess_complexity("select * from a JOIN b ON a.id = b.a_id limit 5")
        assert report.is_valid

    def test_using_join_is_a_known_false_positive(self):
        report = assess_complexity("select * from a join b using (id) limit 5")
        assert POSSIBLE_CARTESIAN_PRODUCT in report.warnings

    def test_both_warnings_in_order(self):
        report = assess_complexity("select * from a cross join b")
        assert report.warnings == (NO_LIMIT, POSSIBLE_CARTESIAN_PRODUCT)

    def test_non_string_does_not_raise(self):
        report = assess_complexity(None)
        assert report.warnings == (NO_LIMIT,)


class TestHelpers:
    """Tests for is_safe_sql, describe_reason, extract_sql and format_sql."""

    def test_is_safe_sql_tuple(self):
        assert is_safe_sql("select 1") == (True, "")
        assert is_safe_sql("drop table t") == (False, NOT_A_SELECT)

    def test_verdict_is_immutable(self):
        verdict = Verdict(admitted=True)
        with pytest.raises(AttributeError):
            verdict.admitted = False

    def test_describe_reason_includes_detail(self):
        assert "(drop)" in describe_reason("FORBIDDEN_KEYWORD:drop")
        assert describe_reason(NOT_A_SELECT) == "Only SELECT queries are allowed."
        assert describe_reason("SOMETHING_ELSE")

    @pytest.mark.parametrize("raw,expected", [
        ("```sql\nSELECT 1;\n```", "SELECT 1"),
        ("Here you go:\n```\nSELECT 2\n```", "SELECT 2"),
        ("SQL: SELECT 3;", "SELECT 3"),
        ("```sql\nSELECT 4;;", "SELECT 4"),
        ("  select 5 ; ; ", "select 5"),
        ("", ""),
    ])
    def test_extract_sql(self, raw, expected):
        assert extract_sql(raw) == expected

    def test_format_sql_uppercases_keywords(self):
        formatted = format_sql("select id from users where id = 1")
        assert formatted.startswith("SELECT id")
        assert "\nFROM users" in formatted

    def test_format_sql_empty(self):
        assert format_sql("") == ""


class TestGateCorpus:
    """Every case in the YAML regression corpus keeps its expected verdict."""

    @staticmethod
    def _cases():
        with open(GATE_CASES, "r", encoding="utf-8") as f:
            return yaml.safe_load(f)["cases"]

    def test_corpus_not_empty(self):
        assert len(self._cases()) > 10

    @pytest.mark.parametrize("case", _cases.__func__(), ids=lambda c: c["name"])
    def test_case(self, case):
        verdict = validate_sql(case["sql"])
        assert verdict.admitted is case["admitted"]
        if "first_reason" in case:
            assert verdict.first_reason == case["first_reason"]
