from collections.abc import Callable

import pytest

import glbind_gen


@pytest.fixture
def registry(fixture_xml_paths) -> glbind_gen.Registry:
    return glbind_gen.load_registry(fixture_xml_paths)


def test_gather_feature_summaries_counts_requires(registry: glbind_gen.Registry) -> None:
    summaries = glbind_gen.gather_feature_summaries(registry)

    assert [s.name for s in summaries] == [
        "GL_VERSION_1_0",
        "GL_VERSION_1_1",
        "GL_ES_VERSION_2_0",
        "WGL_VERSION_1_0",
        "GLX_VERSION_1_0",
    ]
    first = summaries[0]
    assert (first.api, first.number) == ("gl", "1.0")
    assert (first.type_count, first.enum_count, first.command_count) == (2, 4, 4)


def test_gather_feature_summaries_filters_by_api(registry: glbind_gen.Registry) -> None:
    summaries = glbind_gen.gather_feature_summaries(registry, "glx")

    assert [s.name for s in summaries] == ["GLX_VERSION_1_0"]


def test_gather_extension_summaries_filter_is_case_insensitive(
    registry: glbind_gen.Registry,
) -> None:
    summaries = glbind_gen.gather_extension_summaries(registry, "ARB_")

    assert [s.name for s in summaries] == [
        "GL_ARB_sync",
        "WGL_ARB_create_context",
        "WGL_ARB_pbuffer",
    ]
    assert glbind_gen.gather_extension_summaries(registry, "swap_CONTROL")[0].api == "glx"


def test_format_features_table(
    make_registry: Callable[..., glbind_gen.Registry],
) -> None:
    registry = make_registry(
        '<feature api="gl" name="GL_VERSION_1_0" number="1.0">'
        '<require><type name="GLint"/><enum name="GL_TRUE"/>'
        '<command name="glFlush"/></require></feature>'
        '<feature api="wgl" name="WGL_VERSION_1_0" number="1.0"/>'
    )

    table = glbind_gen.format_features_table(
        glbind_gen.gather_feature_summaries(registry)
    )

    assert table.splitlines() == [
        "2 features:",
        "",
        "  gl   GL_VERSION_1_0   1.0       1 types      1 enums     1 commands",
        "  wgl  WGL_VERSION_1_0  1.0       0 types      0 enums     0 commands",
    ]
    assert table.endswith("\n")


def test_format_extensions_table_empty() -> None:
    assert glbind_gen.format_extensions_table([]) == "0 extensions:\n\n"


def test_format_extensions_table_rows(registry: glbind_gen.Registry) -> None:
    table = glbind_gen.format_extensions_table(
        glbind_gen.gather_extension_summaries(registry, "GL_ARB_sync")
    )

    assert table.splitlines()[2] == (
        "  GL_ARB_sync  gl|glcore     0 types      2 enums     1 commands"
    )


def test_run_discovery_lists_extensions(
    fixture_xml_paths, capsys: pytest.CaptureFixture[str]
) -> None:
    config = glbind_gen.DiscoveryConfig(
        command="list-extensions",
        xml_paths=tuple(fixture_xml_paths),
        filter_text="pbuffer",
        api=None,
    )

    glbind_gen.run_discovery(config)

    out = capsys.readouterr().out
    assert "1 extensions:" in out
    assert "WGL_ARB_pbuffer" in out


def test_main_list_features(
    fixture_xml_paths, capsys: pytest.CaptureFixture[str]
) -> None:
    argv = ["--list-features", "--api", "gl"]
    for path in fixture_xml_paths:
        argv.extend(["--xml", str(path)])

    glbind_gen.main(argv)

    out = capsys.readouterr().out
    assert "2 features:" in out
    assert "GL_VERSION_1_1" in out
    assert "WGL_VERSION_1_0" not in out.split("2 features:")[1]
