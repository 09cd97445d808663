import argparse
import sys
import xml.etree.ElementTree as ET
from collections.abc import Callable
from pathlib import Path

import pytest

GENERATOR_DIR = Path(__file__).resolve().parent.parent
if str(GENERATOR_DIR) not in sys.path:
    sys.path.insert(0, str(GENERATOR_DIR))

import interop_gen  # noqa: E402

FIXTURES_DIR = Path(__file__).resolve().parent / "fixtures"
VALUE_TASK = "global::System.Threading.Tasks.ValueTask"


@pytest.fixture
def fixture_interop_xml() -> Path:
    return FIXTURES_DIR / "interop_minimal.xml"


@pytest.fixture
def existing_paths(tmp_path: Path) -> dict[str, Path]:
    interop_xml = tmp_path / "interop.xml"
    interop_xml.write_text("<interop />\n", encoding="utf-8")
    return {
        "interop_xml": interop_xml,
        "output_dir": tmp_path / "out",
    }


@pytest.fixture
def make_args(existing_paths: dict[str, Path]) -> Callable[..., argparse.Namespace]:
    def _make_args(**overrides: object) -> argparse.Namespace:
        base_args: dict[str, object] = {
            "interop_xml": existing_paths["interop_xml"],
            "output_dir": existing_paths["output_dir"],
            "strict": False,
            "list_interfaces": False,
            "info": None,
            "filter": None,
        }
        base_args.update(overrides)
        return argparse.Namespace(**base_args)

    return _make_args


@pytest.fixture
def make_interop_root() -> Callable[[str], ET.Element]:
    def _make_interop_root(inner_xml: str) -> ET.Element:
        return ET.fromstring(f"<interop>{inner_xml}</interop>")

    return _make_interop_root


@pytest.fixture
def make_member() -> Callable[..., interop_gen.MemberBinding]:
    def _make_member(
        name: str,
        *,
        wire_name: str | None = None,
        result_shape: str | None = None,
        parameters: tuple[tuple[str, str], ...] = (),
    ) -> interop_gen.MemberBinding:
        return_type = (
            VALUE_TASK if result_shape is None else f"{VALUE_TASK}<{result_shape}>"
        )
        return interop_gen.MemberBinding(
            interface_member_name=name,
            wire_name=name if wire_name is None else wire_name,
            return_type=return_type,
            result_shape=result_shape,
            parameters=tuple(interop_gen.ParameterBinding(t, n) for t, n in parameters),
        )

    return _make_member


@pytest.fixture
def make_binding() -> Callable[..., interop_gen.ModuleBinding]:
    def _make_binding(
        members: tuple[interop_gen.MemberBinding, ...],
        *,
        interface_name: str = "IUtilitiesInterop",
        namespace: str = "Demo.Interop",
        module_path: str = "./js/utilities.js",
        export_prefix: str = "",
    ) -> interop_gen.ModuleBinding:
        return interop_gen.ModuleBinding(
            module_path=module_path,
            export_prefix=export_prefix,
            members=members,
            source_interface_name=interface_name,
            containing_namespace=namespace,
        )

    return _make_binding
