from __future__ import annotations

from pathlib import Path

import pytest

import interop_gen


def _load(path: Path) -> tuple[list[interop_gen.InterfaceDecl], interop_gen.ExtractionResult]:
    interfaces = interop_gen.parse_interop_document(
        interop_gen.load_interop_document(path)
    )
    return interfaces, interop_gen.extract_bindings(interfaces)


def _summary(
    name: str, module_path: str, prefix: str, count: int
) -> interop_gen.InterfaceSummary:
    return interop_gen.InterfaceSummary(
        qualified_name=name,
        proxy_type_name=name.rsplit(".", 1)[-1][1:],
        module_path=module_path,
        export_prefix=prefix,
        member_count=count,
    )


def test_gather_interface_summaries_from_fixture(fixture_interop_xml: Path) -> None:
    _, result = _load(fixture_interop_xml)

    summaries = interop_gen.gather_interface_summaries(result)

    assert [
        (s.qualified_name, s.module_path, s.export_prefix, s.member_count)
        for s in summaries
    ] == [
        ("Demo.Interop.IUtilitiesInterop", "./js/utilities.js", "Utilities", 2),
        ("Demo.Interop.IFocusInterop", "./js/focus.js", "default", 1),
        ("Demo.Clipboard.IClipboardInterop", "./js/clipboard.js", "", 1),
    ]


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("UTILITIES", ["Demo.Interop.IUtilitiesInterop"]),
        ("clipboard.js", ["Demo.Clipboard.IClipboardInterop"]),
        ("nothing", []),
    ],
)
def test_filter_interfaces_by_text_matches_name_or_module_case_insensitive(
    fixture_interop_xml: Path, text: str, expected: list[str]
) -> None:
    _, result = _load(fixture_interop_xml)
    summaries = interop_gen.gather_interface_summaries(result)

    filtered = interop_gen.filter_interfaces_by_text(summaries, text)

    assert [s.qualified_name for s in filtered] == expected


def test_format_interfaces_table_aligns_columns() -> None:
    summaries = [
        _summary("Demo.IUtilitiesInterop", "./js/utilities.js", "Utilities", 2),
        _summary("Demo.IFocus", "./js/f.js", "default", 1),
    ]

    text = interop_gen.format_interfaces_table(summaries, "interop.xml")
    lines = text.splitlines()

    assert lines[0] == "2 JS interop interfaces in interop.xml:"
    assert lines[1] == ""
    assert lines[2] == (
        "  Demo.IUtilitiesInterop  ./js/utilities.js  Utilities  2 methods"
    )
    assert lines[3] == (
        "  Demo.IFocus             ./js/f.js          default    1 method"
    )
    assert text.endswith("\n")


def test_format_interfaces_table_omits_prefix_column_when_all_empty() -> None:
    text = interop_gen.format_interfaces_table(
        [_summary("Demo.IA", "./a.js", "", 3)], "interop.xml"
    )

    assert "  Demo.IA  ./a.js  3 methods" in text.splitlines()


def test_format_interfaces_table_empty() -> None:
    text = interop_gen.format_interfaces_table([], "interop.xml")

    assert text.startswith("0 JS interop interfaces in interop.xml:")


@pytest.mark.parametrize(
    "name",
    [
        "IUtilitiesInterop",
        "Demo.Interop.IUtilitiesInterop",
        "global::Demo.Interop.IUtilitiesInterop",
    ],
)
def test_gather_interface_detail_by_simple_or_qualified_name(
    fixture_interop_xml: Path, name: str
) -> None:
    interfaces, result = _load(fixture_interop_xml)

    detail = interop_gen.gather_interface_detail(interfaces, result, name)

    assert detail is not None
    assert detail.interface_name == "Demo.Interop.IUtilitiesInterop"
    assert detail.binding is not None
    assert detail.binding.proxy_type_name == "UtilitiesInterop"
    assert detail.skipped == ()


def test_gather_interface_detail_unknown_returns_none(fixture_interop_xml: Path) -> None:
    interfaces, result = _load(fixture_interop_xml)

    assert interop_gen.gather_interface_detail(interfaces, result, "INope") is None


def test_format_interface_detail_generated_interface(fixture_interop_xml: Path) -> None:
    interfaces, result = _load(fixture_interop_xml)
    detail = interop_gen.gather_interface_detail(
        interfaces, result, "IClipboardInterop"
    )
    assert detail is not None

    lines = interop_gen.format_interface_detail(detail).splitlines()

    assert lines[0] == "Demo.Clipboard.IClipboardInterop -> ClipboardInterop"
    assert "  Module:   ./js/clipboard.js" in lines
    assert "  Export:   (top level)" in lines
    assert "  Methods (1):" in lines
    assert "    ReadTextAsync  ReadTextAsync -> string" in lines
    assert "  Skipped (3):" in lines


def test_format_interface_detail_skipped_interface(fixture_interop_xml: Path) -> None:
    interfaces, result = _load(fixture_interop_xml)
    detail = interop_gen.gather_interface_detail(interfaces, result, "ILegacyWidget")
    assert detail is not None
    assert detail.binding is None

    text = interop_gen.format_interface_detail(detail)

    assert text.startswith("Demo.ILegacyWidget (not generated)")
    assert "NO_MODULE_ATTRIBUTE" in text


def test_run_discovery_list_interfaces_prints_table(
    fixture_interop_xml: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    config = interop_gen.DiscoveryConfig(
        command="list-interfaces",
        filter_text="focus",
        info_interface=None,
        interop_xml=fixture_interop_xml,
    )

    interop_gen.run_discovery(config)

    out = capsys.readouterr().out
    assert out.startswith("1 JS interop interfaces in interop_minimal.xml:")
    assert "Demo.Interop.IFocusInterop" in out


def test_run_discovery_info_unknown_interface_exits_1(
    fixture_interop_xml: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    config = interop_gen.DiscoveryConfig(
        command="info",
        filter_text=None,
        info_interface="INope",
        interop_xml=fixture_interop_xml,
    )

    with pytest.raises(SystemExit) as exc_info:
        interop_gen.run_discovery(config)

    assert exc_info.value.code == 1
    assert "interface 'INope' not found" in capsys.readouterr().err
