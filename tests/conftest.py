import sys
import xml.etree.ElementTree as ET
from collections.abc import Callable
from pathlib import Path

import pytest

GENERATOR_DIR = Path(__file__).resolve().parent.parent
if str(GENERATOR_DIR) not in sys.path:
    sys.path.insert(0, str(GENERATOR_DIR))

import glbind_gen  # noqa: E402

FIXTURES_DIR = Path(__file__).resolve().parent / "fixtures"


@pytest.fixture
def fixture_xml_paths() -> tuple[Path, Path, Path]:
    return (
        FIXTURES_DIR / "gl_minimal.xml",
        FIXTURES_DIR / "wgl_minimal.xml",
        FIXTURES_DIR / "glx_minimal.xml",
    )


@pytest.fixture
def fixture_template() -> Path:
    return FIXTURES_DIR / "template.h"


@pytest.fixture
def make_registry_root() -> Callable[[str], ET.Element]:
    def _make_registry_root(inner_xml: str) -> ET.Element:
        return ET.fromstring(f"<registry>{inner_xml}</registry>")

    return _make_registry_root


@pytest.fixture
def make_registry(
    make_registry_root: Callable[[str], ET.Element],
) -> Callable[..., glbind_gen.Registry]:
    def _make_registry(*inner_xml: str) -> glbind_gen.Registry:
        return glbind_gen.Registry.merged(
            [
                glbind_gen.load_registry_document(make_registry_root(xml))
                for xml in inner_xml
            ]
        )

    return _make_registry


@pytest.fixture
def write_registry(tmp_path: Path) -> Callable[[str, str], Path]:
    def _write_registry(filename: str, inner_xml: str) -> Path:
        path = tmp_path / filename
        path.write_text(f"<registry>{inner_xml}</registry>\n", encoding="utf-8")
        return path

    return _write_registry


@pytest.fixture
def make_command() -> Callable[..., glbind_gen.CommandDef]:
    def _make_command(
        name: str,
        *,
        return_type: str = "void",
        params: tuple[tuple[str, str], ...] = (),
    ) -> glbind_gen.CommandDef:
        return glbind_gen.CommandDef(
            return_semantic_type="",
            return_full_type_text=return_type,
            name=name,
            params=tuple(
                glbind_gen.CommandParam(
                    semantic_type=type_text, full_type_text=type_text, name=param
                )
                for type_text, param in params
            ),
        )

    return _make_command
