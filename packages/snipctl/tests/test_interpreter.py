from __future__ import annotations

import pytest

from helpers import evaluate
from snipctl.context import ExecutionContext
from snipctl.model import ContextLifetime, OutcomeKind


def _out(source: str, **kwargs: object) -> list[str]:
    result = evaluate(source, **kwargs)  # type: ignore[arg-type]
    assert result.outcome.kind is OutcomeKind.COMPLETED, result.outcome
    return list(result.output)


@pytest.mark.unit
def test_additive_coercion() -> None:
    assert _out('console.log("5" + 1, "5" - 1, "5" * "2", true + 1, [] + [], null + 1, undefined + 1)') == [
        "51 4 10 2  1 NaN"
    ]


@pytest.mark.unit
def test_loose_equality_table() -> None:
    source = 'console.log(0 == "", null == undefined, null == 0, NaN == NaN, "1" === 1, [1] == 1)'
    assert _out(source) == ["true true false false false true"]


@pytest.mark.unit
def test_typeof_reports_runtime_types() -> None:
    source = "console.log(typeof null, typeof undefined, typeof 1, typeof 's', typeof {}, typeof function () {}, typeof Symbol())"
    assert _out(source) == ["object undefined number string object function symbol"]


@pytest.mark.unit
def test_truthiness() -> None:
    source = "console.log([0, '', NaN, null, undefined, [], {}, '0'].map(v => !!v).join(','))"
    assert _out(source) == ["false,false,false,false,false,true,true,true"]


@pytest.mark.unit
def test_var_is_function_scoped_and_let_is_block_scoped() -> None:
    source = "var a = 1\n{ var a = 2 }\nlet b = 1\n{ let b = 2 }\nconsole.log(a, b)"
    assert _out(source) == ["2 1"]


@pytest.mark.unit
def test_let_loop_bindings_are_per_iteration() -> None:
    source = "const fs = []\nfor (let i = 0; i < 3; i++) fs.push(() => i)\nconsole.log(fs.map(f => f()))"
    assert _out(source) == ["[ 0, 1, 2 ]"]


@pytest.mark.unit
def test_default_parameters_and_arguments_object() -> None:
    source = (
        "function multiply(a, b = a) { return a * b }\n"
        "function count() { return arguments.length }\n"
        "console.log(multiply(5), multiply(3, 4), count(1, 2, 3))"
    )
    assert _out(source) == ["25 12 3"]


@pytest.mark.unit
def test_classes_and_super_calls() -> None:
    source = (
        "class Animal { constructor(name) { this.name = name } speak() { return `${this.name} makes a sound` } }\n"
        "class Dog extends Animal { speak() { return `${super.speak()} (woof)` } }\n"
        "console.log(new Dog('Rex').speak())"
    )
    assert _out(source) == ["Rex makes a sound (woof)"]


@pytest.mark.unit
def test_destructuring_and_rest() -> None:
    source = "const { a, ...rest } = { a: 1, b: 2, c: 3 }\nconst [x, , z = 9] = [1, 2]\nconsole.log(a, rest, x, z)"
    assert _out(source) == ["1 { b: 2, c: 3 } 1 9"]


@pytest.mark.unit
def test_caught_errors_are_language_values() -> None:
    source = "try { null.x } catch (e) { console.log(e instanceof TypeError, e.name, e.message) }"
    assert _out(source) == ["true TypeError Cannot read properties of null (reading 'x')"]


@pytest.mark.unit
def test_hoisting_and_temporal_dead_zone() -> None:
    source = "console.log(typeof hoisted)\nfunction hoisted() {}\ntry { later } catch (e) { console.log(e.name) }\nlet later = 1"
    assert _out(source) == ["function", "ReferenceError"]


@pytest.mark.unit
def test_number_rendering() -> None:
    source = "console.log(0.1 + 0.2, 1e21, 1 / 3, -0, (1.005).toFixed(2), (255).toString(16), 2 ** 53)"
    assert _out(source) == ["0.30000000000000004 1e+21 0.3333333333333333 -0 1.00 ff 9007199254740992"]


@pytest.mark.unit
def test_integers_past_2_53_render_shortest_round_trip_digits() -> None:
    source = "console.log(String(2 ** 64), 123456789012345680000, 2 ** 60 + '', 2 ** 53 + 1, -(2 ** 70))"
    assert _out(source) == ["18446744073709552000 123456789012345680000 1152921504606847000 9007199254740992 -1.1805916207174113e+21"]


@pytest.mark.unit
def test_array_pipeline() -> None:
    source = "console.log([1, 2, 3, 4].filter(n => n % 2).map(n => n * 10).reduce((a, b) => a + b, 0), [3, 1, 2].sort())"
    assert _out(source) == ["40 [ 1, 2, 3 ]"]


@pytest.mark.unit
def test_collections_render_like_console() -> None:
    source = "const m = new Map([['a', 1]])\nm.set('b', 2)\nconsole.log(m, new Set([1, 1, 2]))"
    assert _out(source) == ["Map(2) { 'a' => 1, 'b' => 2 } Set(2) { 1, 2 }"]


@pytest.mark.unit
def test_nested_objects_collapse_past_depth() -> None:
    assert _out("console.log({ a: { b: { c: { d: 1 } } } })") == ["{ a: { b: { c: [Object] } } }"]


@pytest.mark.unit
def test_long_numeric_arrays_group_into_columns() -> None:
    assert _out("console.log([1, 2, 3, 4, 5, 6, 7])") == ["[\n  1, 2, 3, 4,\n  5, 6, 7\n]"]


@pytest.mark.unit
def test_json_round_trip() -> None:
    source = "console.log(JSON.stringify({ a: [1, 'x', null], b: undefined }), JSON.parse('{\"n\": 1.5}').n)"
    assert _out(source) == ['{"a":[1,"x",null]} 1.5']


@pytest.mark.unit
def test_json_parse_errors_are_syntax_errors() -> None:
    result = evaluate("JSON.parse('{oops')")
    assert result.outcome.kind is OutcomeKind.THROWN
    assert result.outcome.error_name == "SyntaxError"


@pytest.mark.unit
def test_console_format_directives() -> None:
    assert _out("console.log('%s is %i years', 'Ada', 36.5, 'extra')") == ["Ada is 36 years extra"]


@pytest.mark.unit
def test_completion_value_is_rendered() -> None:
    assert evaluate("1 + 2").outcome.value == "3"
    assert evaluate("'a' + 'b'").outcome.value == "'ab'"
    assert evaluate("let unused = 1").outcome.value == "undefined"


@pytest.mark.unit
def test_uncaught_error_reports_name_message_and_document_line() -> None:
    result = evaluate("const ok = 1\n\nthrow new RangeError('bad')")
    outcome = result.outcome
    assert outcome.kind is OutcomeKind.THROWN
    assert (outcome.error_name, outcome.error_message) == ("RangeError", "bad")
    assert outcome.value == "RangeError: bad"
    assert outcome.error_line == 4


@pytest.mark.unit
def test_thrown_non_error_values_are_rendered() -> None:
    outcome = evaluate("throw 'oops'").outcome
    assert outcome.kind is OutcomeKind.THROWN
    assert outcome.error_name == ""
    assert outcome.value == "'oops'"


@pytest.mark.unit
def test_syntax_errors_surface_as_thrown() -> None:
    outcome = evaluate("let x = ;").outcome
    assert outcome.kind is OutcomeKind.THROWN
    assert outcome.error_name == "SyntaxError"


@pytest.mark.unit
def test_unbounded_recursion_is_a_range_error() -> None:
    outcome = evaluate("function f() { return f() }\nf()").outcome
    assert outcome.kind is OutcomeKind.THROWN
    assert (outcome.error_name, outcome.error_message) == ("RangeError", "Maximum call stack size exceeded")
    assert evaluate("function g(n) { return n === 0 ? 0 : 1 + g(n - 1) }\ng(400)").outcome.value == "400"


@pytest.mark.unit
def test_assertions_record_failures_without_throwing() -> None:
    result = evaluate("assert.strictEqual(1, 2)\nconsole.assert(false, 'nope')\nassert.deepEqual({ a: [1] }, { a: [1] })\n'done'")
    assert result.outcome.value == "'done'"
    assert result.assertion_failures == ("1 === 2", "Assertion failed: nope")


@pytest.mark.unit
def test_timers_run_in_virtual_time_after_the_block() -> None:
    source = "setTimeout(() => console.log('later'), 10)\nsetTimeout(() => console.log('sooner'), 1)\nconsole.log('now')"
    assert _out(source, allow=("print", "timers")) == ["now", "sooner", "later"]


@pytest.mark.unit
def test_math_random_is_seeded_per_context() -> None:
    def draw(seed: int) -> str:
        return evaluate("Math.random()", ExecutionContext(ContextLifetime.FRESH, "t", seed)).outcome.value

    assert draw(7) == draw(7)
    assert draw(7) != draw(8)


@pytest.mark.unit
def test_getters_and_implicit_globals() -> None:
    source = "const o = { get twice() { return 2 * 21 } }\nimplicit = o.twice\nconsole.log(implicit, typeof globalThis)"
    assert _out(source) == ["42 object"]


@pytest.mark.unit
@pytest.mark.parametrize(
    "source",
    [
        "'x'.padStart(2 ** 29)",
        "'ab'.repeat(2 ** 26)",
        "let s = 'ab'\nfor (let i = 0; i < 40; i++) s = s + s",
        "const big = 'x'.repeat(2 ** 25);\n`${big}${big}!`",
        "const big = 'x'.repeat(2 ** 25);\n[big, big].join('-')",
        "const big = 'x'.repeat(2 ** 25);\nbig.concat(big, '!')",
    ],
)
def test_strings_past_the_length_limit_are_range_errors(source: str) -> None:
    outcome = evaluate(source).outcome
    assert outcome.kind is OutcomeKind.THROWN
    assert (outcome.error_name, outcome.error_message) == ("RangeError", "Invalid string length")


@pytest.mark.unit
def test_arrays_past_the_length_limit_are_range_errors() -> None:
    for source in ("Array.from({ length: 2 ** 25 })", "const a = []\na.length = 2 ** 25", "[][2 ** 25] = 1"):
        outcome = evaluate(source).outcome
        assert (outcome.error_name, outcome.error_message) == ("RangeError", "Invalid array length"), source


@pytest.mark.unit
def test_sparse_arrays_keep_their_holes() -> None:
    source = (
        "const a = [1, 2, 3]\ndelete a[1]\n"
        "const b = []\nb[3] = 'x'\n"
        "console.log([, 1], new Array(3), a, b)\n"
        "console.log(1 in a, Object.keys(a), a.length, a[1])"
    )
    assert _out(source) == [
        "[ <1 empty item>, 1 ] [ <3 empty items> ] [ 1, <1 empty item>, 3 ] [ <3 empty items>, 'x' ]",
        "false [ '0', '2' ] 3 undefined",
    ]


@pytest.mark.unit
def test_filling_a_hole_makes_it_an_element_again() -> None:
    source = "const a = new Array(2)\na[0] = 'a'\na.push('c')\nconsole.log(a)\nconsole.log(a.pop(), a.pop(), a)\na.push('b')\nconsole.log(a)"
    assert _out(source) == ["[ 'a', <1 empty item>, 'c' ]", "c undefined [ 'a' ]", "[ 'a', 'b' ]"]


@pytest.mark.unit
def test_strings_are_measured_in_utf16_code_units() -> None:
    source = (
        'const s = "😀"\n'
        "console.log(s.length, [...s].length, s.codePointAt(0), s.charCodeAt(0), s)\n"
        'console.log("\\u{1F600}" === s, String.fromCodePoint(0x1F600) === s, JSON.parse(\'"\\\\ud83d\\\\ude00"\').length)'
    )
    assert _out(source) == ["2 1 128512 55357 😀", "true true 2"]


@pytest.mark.unit
def test_define_property_rejects_non_callable_accessors() -> None:
    outcome = evaluate("Object.defineProperty({}, 'x', { get: 5 })").outcome
    assert (outcome.error_name, outcome.error_message) == ("TypeError", "Getter must be a function: 5")
    outcome = evaluate("Object.defineProperty({}, 'x', { get() {}, value: 1 })").outcome
    assert outcome.error_name == "TypeError"
    source = "const o = Object.defineProperty({}, 'x', { get() { return 7 }, enumerable: true })\nconsole.log(o.x, o)"
    assert _out(source) == ["7 { x: [Getter] }"]
