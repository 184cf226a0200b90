"""Tests for rule resolution."""

from fieldforms.validation.rewriter import resolve_validations
from fieldforms.validation.types import ExtraValidation, ResolvedSpec, ValidationSpec


MESSAGE = [{"content": "Patient ID must be unique.", "locale": "en"}]


class TestResolveValidations:
    def test_plain_rule_is_unchanged(self):
        resolved, errors = resolve_validations(
            [ValidationSpec(property="patient_id", rule="regex('^[0-9]{5}$')")]
        )

        assert errors == []
        assert resolved[0].property == "patient_id"
        assert resolved[0].validation is None
        assert resolved[0].func_name is None

    def test_extra_validator_gets_suffixed_property(self):
        resolved, errors = resolve_validations(
            [ValidationSpec(property="patient_id", rule="unique('patient_id')", message=MESSAGE)]
        )

        assert errors == []
        spec = resolved[0]
        assert spec.property == "patient_id_unique"
        assert spec.field == "patient_id"
        assert spec.validation is ExtraValidation.UNIQUE
        assert spec.func_name == "unique"
        assert spec.func_args == ["patient_id"]
        assert spec.message == MESSAGE
        assert spec.rule == "unique('patient_id')"

    def test_sibling_rules_keep_separate_slots(self):
        resolved, _ = resolve_validations(
            [
                ValidationSpec(property="patient_id", rule="regex('^[0-9]{5}$')"),
                ValidationSpec(property="patient_id", rule="unique('patient_id')"),
            ]
        )

        assert [s.property for s in resolved] == ["patient_id", "patient_id_unique"]

    def test_input_is_not_modified(self):
        original = ValidationSpec(property="week", rule="isISOWeek('week', 'year')")

        resolved, _ = resolve_validations([original])

        assert original.property == "week"
        assert not isinstance(original, ResolvedSpec)
        assert resolved[0].property == "week_isISOWeek"

    def test_resolving_twice_is_stable(self):
        first, _ = resolve_validations(
            [ValidationSpec(property="patient_id", rule="uniqueWithin('patient_id', '7 days')")]
        )
        second, errors = resolve_validations(first)

        assert errors == []
        assert second == first
        assert second[0].property == "patient_id_uniqueWithin"
        assert second[0].field == "patient_id"

    def test_extra_call_inside_compound_rule(self):
        resolved, _ = resolve_validations(
            [ValidationSpec(property="patient_id", rule="lenEquals(5) && (unique('patient_id'))")]
        )

        assert resolved[0].property == "patient_id_unique"
        assert resolved[0].func_args == ["patient_id"]

    def test_first_extra_call_wins(self, caplog):
        resolved, _ = resolve_validations(
            [ValidationSpec(property="p", rule="unique('p') && exists('R', 'p')")]
        )

        assert resolved[0].validation is ExtraValidation.UNIQUE
        assert "more than one extra validator" in caplog.text

    def test_extra_names_are_case_sensitive(self):
        resolved, _ = resolve_validations([ValidationSpec(property="p", rule="UNIQUE('p')")])

        assert resolved[0].property == "p"
        assert resolved[0].validation is None

    def test_spec_without_rule_is_kept(self):
        resolved, errors = resolve_validations([ValidationSpec(property="notes")])

        assert errors == []
        assert resolved[0].property == "notes"

    def test_parse_errors_are_collected(self):
        resolved, errors = resolve_validations(
            [
                ValidationSpec(property="a", rule="lenMin(5"),
                ValidationSpec(property="b", rule="integer"),
                ValidationSpec(property="c", rule="&& integer"),
            ]
        )

        assert len(errors) == 2
        assert all(e.startswith("Error on rule validations:") for e in errors)
        assert [s.property for s in resolved] == ["b"]

    def test_to_dict_includes_call(self):
        resolved, _ = resolve_validations(
            [ValidationSpec(property="patient_id", rule="unique('patient_id')")]
        )

        assert resolved[0].to_dict() == {
            "property": "patient_id_unique",
            "rule": "unique('patient_id')",
            "funcName": "unique",
            "funcArgs": ["patient_id"],
            "field": "patient_id",
        }
