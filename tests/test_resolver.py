from collections.abc import Callable

import pytest

import glbind_gen


def test_find_type_returns_first_declaration(
    make_registry: Callable[..., glbind_gen.Registry],
) -> None:
    registry = make_registry(
        "<types><type>typedef int <name>GLint</name>;</type>"
        "<type>typedef short <name>GLint</name>;</type></types>",
        "<types><type>typedef long <name>GLint</name>;</type></types>",
    )
    resolver = glbind_gen.ReferenceResolver(registry)

    assert resolver.find_type("GLint").native_code == "typedef int GLint;"
    assert resolver.has_type("GLint")
    assert not resolver.has_type("GLuint")


def test_find_enum_scans_blocks_in_order(
    make_registry: Callable[..., glbind_gen.Registry],
) -> None:
    registry = make_registry(
        '<enums><enum name="GL_A" value="1"/></enums>'
        '<enums><enum name="GL_B" value="2"/><enum name="GL_A" value="3"/></enums>'
    )
    resolver = glbind_gen.ReferenceResolver(registry)

    assert resolver.find_enum("GL_A").value == "1"
    assert resolver.find_enum("GL_B").value == "2"


def test_find_command_scans_blocks_across_documents(
    make_registry: Callable[..., glbind_gen.Registry],
) -> None:
    registry = make_registry(
        '<commands namespace="GL"><command><proto>void <name>glFlush</name></proto>'
        "</command></commands>",
        '<commands namespace="WGL"><command><proto><ptype>BOOL</ptype> '
        "<name>wglSwapIntervalEXT</name></proto></command></commands>",
    )
    resolver = glbind_gen.ReferenceResolver(registry)

    assert resolver.find_command("glFlush").return_full_type_text == "void"
    assert resolver.find_command("wglSwapIntervalEXT").return_semantic_type == "BOOL"


@pytest.mark.parametrize(
    ("method", "kind"),
    [("find_type", "type"), ("find_enum", "enum"), ("find_command", "command")],
)
def test_missing_reference_raises_reference_not_found(method: str, kind: str) -> None:
    resolver = glbind_gen.ReferenceResolver(glbind_gen.Registry())

    with pytest.raises(glbind_gen.GeneratorError) as exc_info:
        getattr(resolver, method)("glMissing")

    err = exc_info.value
    assert err.code == "REFERENCE_NOT_FOUND"
    assert err.stage == "resolve"
    assert err.exit_code == glbind_gen.EXIT_CODES["resolve"]
    assert f"{kind} 'glMissing'" in err.message
    assert err.suggestion


def test_generator_error_rejects_unknown_code_and_stage() -> None:
    with pytest.raises(ValueError):
        glbind_gen.GeneratorError("NOPE", "message", "load")
    with pytest.raises(ValueError):
        glbind_gen.GeneratorError("IO_FAILURE", "message", "nowhere")


def test_exit_codes_are_distinct_and_non_zero() -> None:
    codes = list(glbind_gen.EXIT_CODES.values())

    assert len(set(codes)) == len(codes)
    assert 0 not in codes
