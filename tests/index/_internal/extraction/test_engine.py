"""Tests for the query-driven extraction engine."""

from collections.abc import Callable
from unittest.mock import patch

import pytest

from codeskel.core.errors import ErrorCode, ExtractionError
from codeskel.index._internal.extraction import ExtractionEngine, namespace_hint
from codeskel.index._internal.languages import JavascriptProfile, PythonProfile
from codeskel.index.models import CodeUnit, FileExtraction, FileFingerprint

Extract = Callable[[str, str], FileExtraction]


class _NoFieldsProfile(JavascriptProfile):
    """JavaScript without field declarations."""

    def ignored_captures(self) -> frozenset[str]:
        return frozenset({"field.definition"})


class TestNamespaceHint:
    @pytest.mark.parametrize(
        ("rel_path", "expected"),
        [
            ("a.js", ""),
            ("src/a.js", "src"),
            ("src/app/models/user.js", "src.app.models"),
        ],
    )
    def test_given_path_when_hinted_then_dotted_directories(
        self, rel_path: str, expected: str
    ) -> None:
        assert namespace_hint(rel_path) == expected


class TestClassCounting:
    def test_given_n_top_level_classes_when_extracted_then_n_class_units(
        self, extract: Extract
    ) -> None:
        """Every top-level class becomes exactly one CLASS unit."""
        # Given
        source = "".join(f"class C{i} {{}}\n" for i in range(5))

        # When
        extraction = extract("many.js", source)

        # Then
        assert [u.short_name for u in extraction.classes] == [f"C{i}" for i in range(5)]
        assert all(u.is_class for u in extraction.units)


class TestNesting:
    def test_given_js_class_in_static_field_when_extracted_then_dollar_chain(
        self, extract: Extract
    ) -> None:
        """A class bound to a class field nests under the outer class."""
        # Given
        source = "class Outer {\n  static Inner = class {\n    m() {}\n  };\n}\n"

        # When
        extraction = extract("nest.js", source)

        # Then
        assert [u.short_name for u in extraction.units] == ["Outer", "Outer$Inner", "Outer$Inner.m"]
        inner = extraction.units[1]
        assert inner.is_class
        assert inner.parent_short_name == "Outer"
        assert inner.identifier == "Inner"

    def test_given_js_nested_class_when_rendered_then_indented_twice(
        self, engine: ExtractionEngine, extract: Extract
    ) -> None:
        # Given
        extraction = extract(
            "nest.js", "class Outer {\n  static Inner = class {\n    m() {}\n  };\n}\n"
        )

        # When
        text = engine.renderer.render(extraction, extraction.units[0])

        # Then
        assert text == (
            "class Outer {\n"
            "  static Inner = class {\n"
            "    m() {...}\n"
            "  }\n"
            "}"
        )

    def test_given_python_nested_class_when_extracted_then_dollar_chain(
        self, extract: Extract
    ) -> None:
        # Given
        source = "class Outer:\n    class Inner:\n        def m(self):\n            pass\n"

        # When
        extraction = extract("nest.py", source)

        # Then
        assert [u.short_name for u in extraction.units] == ["Outer", "Outer$Inner", "Outer$Inner.m"]
        assert extraction.children[extraction.units[0]] == (extraction.units[1],)

    def test_given_anonymous_class_when_extracted_then_members_skipped(
        self, extract: Extract
    ) -> None:
        """Members of a class without a name have nowhere to live."""
        # Given
        source = "module.exports = class {\n  foo() {}\n};\n"

        # When
        extraction = extract("anon.js", source)

        # Then
        assert extraction.units == ()

    def test_given_function_inside_method_when_extracted_then_local(
        self, extract: Extract
    ) -> None:
        # Given
        source = "class A {\n  run() {\n    function step() {}\n    const f = () => 1;\n  }\n}\n"

        # When
        extraction = extract("local.js", source)

        # Then
        assert [u.short_name for u in extraction.units] == ["A", "A.run"]

    def test_given_object_literal_methods_when_extracted_then_ignored(
        self, extract: Extract
    ) -> None:
        """Only class bodies declare methods; the binding itself is a field."""
        # Given
        source = "const api = {\n  load() {},\n  save() {},\n};\n"

        # When
        extraction = extract("api.js", source)

        # Then
        assert [u.short_name for u in extraction.units] == ["_module_.api"]


class TestReferences:
    def test_given_identifiers_in_method_when_extracted_then_attributed_to_method(
        self, extract: Extract
    ) -> None:
        # Given
        source = "class View {\n  draw() {\n    return render(this.model);\n  }\n}\n"

        # When
        extraction = extract("view.js", source)

        # Then
        draw = CodeUnit.fn("view.js", "", "View.draw")
        assert "render" in extraction.references[draw]
        assert "model" in extraction.references[draw]
        assert "draw" not in extraction.references[draw]

    def test_given_top_level_statement_when_extracted_then_not_attributed(
        self, extract: Extract
    ) -> None:
        # Given
        extraction = extract("main.js", "function go() {}\ngo();\n")

        # Then
        go = CodeUnit.fn("main.js", "", "go")
        assert extraction.references[go] == frozenset()


class TestFailures:
    def test_given_syntax_error_when_extracted_then_parse_failed(self, extract: Extract) -> None:
        """A tree with ERROR nodes contributes no units."""
        # When
        with pytest.raises(ExtractionError) as exc_info:
            extract("broken.js", "class Broken {\n  method( {\n}\n")

        # Then
        assert exc_info.value.code is ErrorCode.PARSE_FAILED
        assert exc_info.value.code.value == 3003
        assert exc_info.value.details["path"] == "broken.js"
        assert "syntax error near line" in exc_info.value.message

    def test_given_lenient_engine_when_syntax_error_then_recovered_units(self) -> None:
        # Given
        engine = ExtractionEngine(fail_on_syntax_error=False)

        # When
        extraction = engine.extract("broken.py", b"class Ok:\n    pass\n\ndef broken(:\n")

        # Then
        assert "Ok" in [u.short_name for u in extraction.units]

    def test_given_invalid_utf8_when_extracted_then_parse_failed(
        self, engine: ExtractionEngine
    ) -> None:
        # When
        with pytest.raises(ExtractionError) as exc_info:
            engine.extract("latin1.js", b"const s = '\xff\xfe';\n")

        # Then
        assert exc_info.value.code is ErrorCode.PARSE_FAILED
        assert "UTF-8" in exc_info.value.message

    def test_given_unknown_extension_when_extracted_then_unsupported(
        self, engine: ExtractionEngine
    ) -> None:
        with pytest.raises(ExtractionError) as exc_info:
            engine.extract("notes.md", b"# hi\n")
        assert exc_info.value.code is ErrorCode.UNSUPPORTED_LANGUAGE


class TestEngineBehavior:
    def test_given_same_input_when_extracted_twice_then_identical(
        self, engine: ExtractionEngine
    ) -> None:
        """Extraction is a pure function of path and content."""
        # Given
        content = b"export class A {\n  b() {}\n}\nexport const c = 1;\n"

        # When
        first = engine.extract("a.js", content)
        second = engine.extract("a.js", content)

        # Then
        assert first.units == second.units
        assert first.signatures == second.signatures
        assert first.references == second.references

    def test_given_fingerprint_when_extracted_then_carried_through(
        self, engine: ExtractionEngine
    ) -> None:
        # Given
        fingerprint = FileFingerprint(mtime_ns=1, size=10)

        # When
        extraction = engine.extract("a.py", b"x = 1\n", fingerprint)

        # Then
        assert extraction.fingerprint == fingerprint
        assert extraction.language == "python"

    def test_given_profile_ignoring_fields_when_extracted_then_no_field_units(self) -> None:
        """Ignored capture tags are dropped before dispatch."""
        # Given
        engine = ExtractionEngine({"javascript": _NoFieldsProfile()})

        # When
        extraction = engine.extract("a.js", b"const x = 1;\nclass A {\n  y = 2;\n}\n")

        # Then
        assert [u.short_name for u in extraction.units] == ["A"]

    def test_given_profile_declining_tag_when_extracted_then_unit_skipped(self) -> None:
        """A profile returning None from create_code_unit suppresses that unit."""
        # Given
        engine = ExtractionEngine({"python": PythonProfile()})

        # When
        with patch.object(PythonProfile, "create_code_unit", return_value=None):
            extraction = engine.extract("a.py", b"class A:\n    pass\n")

        # Then
        assert extraction.units == ()

    def test_given_restricted_engine_when_checked_then_supports_only_enabled(self) -> None:
        # Given
        engine = ExtractionEngine({"python": PythonProfile()})

        # Then
        assert engine.supports("a.py")
        assert not engine.supports("a.js")
