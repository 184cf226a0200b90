"""Tests for extra (datastore-backed) validators.

Tests cover:
- unique
- uniqueWithin
- exists
- isISOWeek
- duration parsing
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from fieldforms.store import REPORTS_BY_FREETEXT, InMemoryDocumentStore
from fieldforms.validation import extra
from fieldforms.validation.extra import (
    EXTRA_VALIDATORS,
    exists,
    is_iso_week,
    iso_weeks_in_year,
    parse_duration,
    unique,
    unique_within,
    window_start,
)
from fieldforms.validation.types import ExtraValidation, ResolvedSpec

NOW = datetime(2024, 3, 31, 12, 0, tzinfo=timezone.utc)


def ms(moment: datetime) -> int:
    return int(moment.timestamp() * 1000)


def report(doc_id, form="R", reported_date=None, errors=None, **fields):
    return {
        "_id": doc_id,
        "type": "data_record",
        "form": form,
        "reported_date": reported_date if reported_date is not None else ms(NOW),
        "errors": errors or [],
        "fields": fields,
    }


def spec(validation: ExtraValidation, *args, prop="patient_id") -> ResolvedSpec:
    return ResolvedSpec(
        property=f"{prop}_{validation.value}",
        rule="",
        validation=validation,
        func_args=list(args),
        field=prop,
    )


@pytest.fixture
def fixed_now(monkeypatch):
    monkeypatch.setattr(extra, "_now", lambda: NOW)
    return NOW


@pytest.fixture
def store():
    return InMemoryDocumentStore(
        [
            report("existing", patient_id="12345", lmp="10"),
            report("errored", patient_id="99999", errors=[{"code": "sys.missing_fields"}]),
            report("registration", form="REG", patient_id="55555"),
        ]
    )


# =============================================================================
# unique
# =============================================================================


class TestUnique:
    @pytest.mark.asyncio
    async def test_duplicate_value_is_invalid(self, store):
        attributes = {"_id": "new", "patient_id": "12345"}

        assert await unique(attributes, spec(ExtraValidation.UNIQUE, "patient_id"), store) is False

    @pytest.mark.asyncio
    async def test_new_value_is_valid(self, store):
        attributes = {"_id": "new", "patient_id": "11111"}

        assert await unique(attributes, spec(ExtraValidation.UNIQUE, "patient_id"), store) is True

    @pytest.mark.asyncio
    async def test_values_are_case_insensitive(self):
        store = InMemoryDocumentStore([report("a", name="Alice")])

        assert await unique({"_id": "b", "name": "ALICE"}, spec(ExtraValidation.UNIQUE, "name"), store) is False

    @pytest.mark.asyncio
    async def test_errored_report_does_not_count(self, store):
        attributes = {"_id": "new", "patient_id": "99999"}

        assert await unique(attributes, spec(ExtraValidation.UNIQUE, "patient_id"), store) is True

    @pytest.mark.asyncio
    async def test_report_does_not_match_itself(self, store):
        attributes = {"_id": "existing", "patient_id": "12345"}

        assert await unique(attributes, spec(ExtraValidation.UNIQUE, "patient_id"), store) is True

    @pytest.mark.asyncio
    async def test_all_fields_must_match(self, store):
        validation = spec(ExtraValidation.UNIQUE, "patient_id", "lmp")

        assert await unique({"_id": "new", "patient_id": "12345", "lmp": "10"}, validation, store) is False
        assert await unique({"_id": "new", "patient_id": "12345", "lmp": "11"}, validation, store) is True

    @pytest.mark.asyncio
    async def test_missing_value_is_unique(self, store):
        assert await unique({"_id": "new"}, spec(ExtraValidation.UNIQUE, "patient_id"), store) is True

    @pytest.mark.asyncio
    async def test_no_arguments_raises(self, store):
        with pytest.raises(ValueError, match="No arguments"):
            await unique({"_id": "new"}, spec(ExtraValidation.UNIQUE), store)

    @pytest.mark.asyncio
    async def test_queries_freetext_view(self):
        store = AsyncMock()
        store.query = AsyncMock(return_value={"rows": []})

        valid = await unique(
            {"_id": "new", "patient_id": "ABC"},
            spec(ExtraValidation.UNIQUE, "patient_id"),
            store,
        )

        assert valid is True
        store.query.assert_awaited_once_with(REPORTS_BY_FREETEXT, key=["patient_id:abc"])
        store.all_docs.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_docs_are_skipped(self):
        store = AsyncMock()
        store.query = AsyncMock(return_value={"rows": [{"id": "gone", "key": "patient_id:1"}]})
        store.all_docs = AsyncMock(
            return_value={"rows": [{"id": "gone", "error": "not_found", "doc": None}]}
        )

        valid = await unique(
            {"_id": "new", "patient_id": "1"},
            spec(ExtraValidation.UNIQUE, "patient_id"),
            store,
        )

        assert valid is True
        store.all_docs.assert_awaited_once_with(keys=["gone"], include_docs=True)

    @pytest.mark.asyncio
    async def test_store_errors_propagate(self):
        store = AsyncMock()
        store.query = AsyncMock(side_effect=ConnectionError("db down"))

        with pytest.raises(ConnectionError):
            await unique(
                {"_id": "new", "patient_id": "1"},
                spec(ExtraValidation.UNIQUE, "patient_id"),
                store,
            )


# =============================================================================
# uniqueWithin
# =============================================================================


class TestUniqueWithin:
    @pytest.mark.asyncio
    async def test_old_report_outside_window(self, fixed_now):
        store = InMemoryDocumentStore(
            [report("old", patient_id="12345", reported_date=ms(fixed_now - timedelta(days=8)))]
        )
        validation = spec(ExtraValidation.UNIQUE_WITHIN, "patient_id", "7 days")

        assert await unique_within({"_id": "new", "patient_id": "12345"}, validation, store) is True

    @pytest.mark.asyncio
    async def test_recent_report_inside_window(self, fixed_now):
        store = InMemoryDocumentStore(
            [report("recent", patient_id="12345", reported_date=ms(fixed_now - timedelta(days=1)))]
        )
        validation = spec(ExtraValidation.UNIQUE_WITHIN, "patient_id", "7 days")

        assert await unique_within({"_id": "new", "patient_id": "12345"}, validation, store) is False

    @pytest.mark.asyncio
    async def test_bad_duration_raises(self, fixed_now, store):
        validation = spec(ExtraValidation.UNIQUE_WITHIN, "patient_id", "a fortnight")

        with pytest.raises(ValueError):
            await unique_within({"_id": "new", "patient_id": "12345"}, validation, store)

    @pytest.mark.asyncio
    async def test_no_arguments_raises(self, store):
        with pytest.raises(ValueError, match="No arguments"):
            await unique_within({"_id": "new"}, spec(ExtraValidation.UNIQUE_WITHIN), store)


# =============================================================================
# exists
# =============================================================================


class TestExists:
    @pytest.mark.asyncio
    async def test_report_of_form_exists(self, store):
        validation = spec(ExtraValidation.EXISTS, "REG", "patient_id")

        assert await exists({"_id": "new", "patient_id": "55555"}, validation, store) is True

    @pytest.mark.asyncio
    async def test_report_of_other_form_does_not_count(self, store):
        validation = spec(ExtraValidation.EXISTS, "REG", "patient_id")

        assert await exists({"_id": "new", "patient_id": "12345"}, validation, store) is False

    @pytest.mark.asyncio
    async def test_form_code_is_case_insensitive(self, store):
        validation = spec(ExtraValidation.EXISTS, "reg", "patient_id")

        assert await exists({"_id": "new", "patient_id": "55555"}, validation, store) is True

    @pytest.mark.asyncio
    async def test_requires_form_and_field(self, store):
        with pytest.raises(ValueError):
            await exists({"_id": "new"}, spec(ExtraValidation.EXISTS, "REG"), store)


# =============================================================================
# isISOWeek
# =============================================================================


class TestIsISOWeek:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "week,year,expected",
        [
            ("53", "2015", True),
            ("53", "2016", False),
            ("52", "2016", True),
            ("1", "2016", True),
            ("0", "2016", False),
            ("54", "2020", False),
            ("ab", "2016", False),
            ("10", "16", False),
            (7, 2021, True),
            ("\u0665", "2016", False),
            ("5", "\u0662\u0660\u0661\u0666", False),
        ],
    )
    async def test_week_and_year(self, week, year, expected):
        attributes = {"week": week, "year": year}
        validation = spec(ExtraValidation.IS_ISO_WEEK, "week", "year", prop="week")

        assert await is_iso_week(attributes, validation, AsyncMock()) is expected

    @pytest.mark.asyncio
    async def test_defaults_to_current_year(self, monkeypatch):
        monkeypatch.setattr(extra, "_now", lambda: datetime(2015, 6, 1, tzinfo=timezone.utc))
        validation = spec(ExtraValidation.IS_ISO_WEEK, "week", prop="week")

        assert await is_iso_week({"week": "53"}, validation, AsyncMock()) is True

    @pytest.mark.asyncio
    async def test_missing_field_is_invalid(self, caplog):
        validation = spec(ExtraValidation.IS_ISO_WEEK, "week", "year", prop="week")

        assert await is_iso_week({"week": "10"}, validation, AsyncMock()) is False
        assert "do not exist" in caplog.text

    @pytest.mark.asyncio
    async def test_store_is_not_used(self):
        store = AsyncMock()
        validation = spec(ExtraValidation.IS_ISO_WEEK, "week", "year", prop="week")

        await is_iso_week({"week": "10", "year": "2020"}, validation, store)

        store.query.assert_not_awaited()
        store.all_docs.assert_not_awaited()

    def test_iso_weeks_in_year(self):
        assert iso_weeks_in_year(2015) == 53
        assert iso_weeks_in_year(2016) == 52
        assert iso_weeks_in_year(2020) == 53


# =============================================================================
# Durations
# =============================================================================


class TestDurations:
    @pytest.mark.parametrize(
        "text,expected",
        [
            ("7 days", (7, "days")),
            ("1 day", (1, "days")),
            ("2 Weeks", (2, "weeks")),
            ("30 m", (30, "minutes")),
            ("3 M", (3, "months")),
            ("1 y", (1, "years")),
        ],
    )
    def test_parse_duration(self, text, expected):
        assert parse_duration(text) == expected

    @pytest.mark.parametrize("text", ["7", "seven days", "7 fortnights", "1 2 days"])
    def test_invalid_duration(self, text):
        with pytest.raises(ValueError):
            parse_duration(text)

    def test_window_start_days(self):
        assert window_start("7 days", NOW) == NOW - timedelta(days=7)

    def test_window_start_months_clamps_day(self):
        assert window_start("1 month", NOW) == datetime(2024, 2, 29, 12, 0, tzinfo=timezone.utc)

    def test_window_start_years(self):
        assert window_start("2 years", NOW) == datetime(2022, 3, 31, 12, 0, tzinfo=timezone.utc)


def test_every_extra_validation_has_a_handler():
    assert set(EXTRA_VALIDATORS) == set(ExtraValidation)
