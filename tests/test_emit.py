"""Tests for the BUILD file serializer."""

from __future__ import annotations

from pathlib import PurePosixPath

import pytest

from genbuild.emit import Call, KwArgs, Sym, emit, load_call, package_call, quote


def test_atoms() -> None:
    assert emit("foo") == '"foo"'
    assert emit(Sym("glob")) == "glob"
    assert emit(PurePosixPath("a/b.jar")) == '"a/b.jar"'
    assert emit(True) == "True"
    assert emit(False) == "False"
    assert emit(3) == "3"


def test_strings_are_escaped() -> None:
    assert quote('say "hi"\n') == '"say \\"hi\\"\\n"'
    assert emit("back\\slash") == '"back\\\\slash"'


def test_collections() -> None:
    assert emit(["a", "b"]) == '["a", "b"]'
    assert emit([]) == "[]"
    assert emit({"a": ["b"]}) == '{"a" : ["b"]}'


def test_call_with_kwargs() -> None:
    call = Call("clojure_library", (KwArgs.of({"name": "core.clj", "deps": ["//x:y"]}),))

    assert emit(call) == 'clojure_library(name = "core.clj",\n\tdeps = ["//x:y"])'


def test_package_and_load() -> None:
    assert emit(package_call()) == 'package(default_visibility = ["//visibility:public"])'
    assert (
        emit(load_call("@rules_clojure//:rules.bzl", "clojure_library", "clojure_test"))
        == 'load("@rules_clojure//:rules.bzl", "clojure_library", "clojure_test")'
    )


@pytest.mark.parametrize("value", [None, 1.5, object(), {"a", "b"}])
def test_unknown_values_are_rejected(value: object) -> None:
    with pytest.raises(TypeError):
        emit(value)
