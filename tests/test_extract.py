import json

from notebooklm_pipeline.extract import MAX_DEPTH, extract_id


class TestExtractId:
    def test_id_nested_three_levels_deep(self):
        node = {"outer": {"middle": {"inner": {"id": "abc1234567"}}}}

        assert extract_id(node) == "abc1234567"

    def test_preferred_key_wins_over_other_values(self):
        node = {"title": "Some_long_title_here", "id": "realid12345"}

        assert extract_id(node) == "realid12345"

    def test_notebook_path_is_extracted(self):
        assert extract_id("https://notebooklm.google.com/notebook/abcdef12345?x=1") == "abcdef12345"

    def test_source_path_is_extracted(self):
        assert extract_id(["see source/src_98765abcd for details"]) == "src_98765abcd"

    def test_bare_token_in_positional_array(self):
        assert extract_id(["", None, [["7c3d8a21-1b2c-4d5e-9f00-123456789abc"]]]) == "7c3d8a21-1b2c-4d5e-9f00-123456789abc"

    def test_short_strings_are_not_ids(self):
        assert extract_id(["abc", "hello world with spaces", ""]) is None

    def test_numbers(self):
        assert extract_id(1234567890) == "1234567890"
        assert extract_id(123) is None
        assert extract_id(True) is None

    def test_embedded_json_string(self):
        assert extract_id(json.dumps(["xyz9876543210"])) == "xyz9876543210"

    def test_self_referential_list_terminates(self):
        node = []
        node.append(node)

        assert extract_id(node) is None

    def test_self_referential_dict_still_finds_id(self):
        node = {"self": None, "child": {"uuid": "cyc_1234567890"}}
        node["self"] = node
        node["child"]["parent"] = node

        assert extract_id(node) == "cyc_1234567890"

    def test_depth_bound(self):
        node = "deep_identifier_1"
        for _ in range(MAX_DEPTH + 5):
            node = [node]

        assert extract_id(node) is None
        assert extract_id(node, max_depth=MAX_DEPTH + 10) == "deep_identifier_1"

    def test_very_deep_input_does_not_raise(self):
        node = []
        for _ in range(50000):
            node = [node]

        assert extract_id(node) is None

    def test_none_and_unsupported_types(self):
        assert extract_id(None) is None
        assert extract_id(object()) is None
