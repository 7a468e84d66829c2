from certlayout.models import TextLayerConfig
from certlayout.shared.rich_text import TextSpan
from certlayout.shared.variables import (
    extract_variables,
    extract_variables_from_layer,
    has_variables,
    is_valid_variable_name,
    merge_variable_data,
    replace_variables,
    replace_variables_in_rich_text,
)


def test_extract_variables_in_order_without_duplicates():
    assert extract_variables("{b} and {a} then {b}") == ["b", "a"]
    assert extract_variables(None) == []
    assert extract_variables("{not valid}") == []


def test_extract_variables_from_layer_reads_rich_text_too():
    layer = TextLayerConfig(
        id="description",
        default_text="Untuk {name}",
        rich_text=(TextSpan("Kelas {kelas} "), TextSpan("{name}", font_weight="bold")),
    )
    assert extract_variables_from_layer(layer) == ["name", "kelas"]


def test_has_variables_and_name_check():
    assert has_variables("Hi {x}")
    assert not has_variables("Hi {}")
    assert is_valid_variable_name("nilai_akhir")
    assert not is_valid_variable_name("nilai akhir")
    assert not is_valid_variable_name("")


def test_replace_keeps_tokens_without_values():
    values = {"name": "Andi", "kelas": "  ", "umur": None}
    assert replace_variables("{name} {kelas} {umur} {x}", values) == "Andi {kelas} {umur} {x}"


def test_replace_formats_non_string_values():
    assert replace_variables("Nilai {nilai}", {"nilai": 87}) == "Nilai 87"


def test_rich_text_replacement_keeps_span_style():
    rich = [TextSpan("Halo "), TextSpan("{name}", font_weight="bold", color="#c00")]
    result = replace_variables_in_rich_text(rich, {"name": "Budi"})
    assert result[0] is rich[0]
    assert result[1] == TextSpan("Budi", font_weight="bold", color="#c00")


def test_merge_variable_data_earlier_sources_win():
    merged = merge_variable_data({"name": "Member"}, None, {"name": "Template", "kelas": "7A"})
    assert merged == {"name": "Member", "kelas": "7A"}
