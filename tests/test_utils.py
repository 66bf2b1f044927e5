from stockbot.utils import extract_json_block, normalize_text, safe_json_loads, tokenize, unwrap_code_fence


def test_tokenize_splits_glued_number_and_unit():
    assert tokenize("Cuba 50mm Inox") == ["cuba", "50", "mm", "inox"]


def test_tokenize_keeps_duplicates_and_order():
    assert tokenize("inox  Inox\t50") == ["inox", "inox", "50"]


def test_tokenize_only_splits_leading_digits_then_letters():
    assert tokenize("mm50 50mm2 3/4pol 10x") == ["mm50", "50mm2", "3/4pol", "10", "x"]


def test_tokenize_empty_input():
    assert tokenize("") == []
    assert tokenize("   ") == []


def test_normalize_text_strips_accents_and_punctuation():
    assert normalize_text("  Não! ") == "nao"
    assert normalize_text("Nova   Busca") == "nova busca"
    assert normalize_text("") == ""


def test_unwrap_code_fence_prefers_json_block():
    raw = 'Claro!\n```json\n{"action": "unknown"}\n```'
    assert unwrap_code_fence(raw) == '{"action": "unknown"}'
    assert unwrap_code_fence('```{"a": 1}```') == '{"a": 1}'


def test_extract_json_block_handles_surrounding_text():
    assert extract_json_block('prefix {"a": {"b": 1}} suffix') == '{"a": {"b": 1}}'
    assert extract_json_block("no braces") is None


def test_safe_json_loads():
    assert safe_json_loads('```json {"action": "search", "term": "cuba"} ```') == {"action": "search", "term": "cuba"}
    assert safe_json_loads("{not json}") is None
    assert safe_json_loads("") is None
