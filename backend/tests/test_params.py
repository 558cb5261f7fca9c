"""
Parameter translator tests

运行测试：
    cd backend
    pytest tests/test_params.py -v
"""

import pytest

from ipfs_proxy.params import OPTION_TO_DIALECT, is_optimization_key, translate


class TestMapping:
    """Client keys map onto the img-* dialect"""

    def test_width_and_format(self):
        params, rejected = translate({"width": "300", "format": "webp"})

        assert params == {"img-width": "300", "img-format": "webp"}
        assert rejected == set()

    def test_every_option_has_dialect_key(self):
        query = {
            "width": "100",
            "height": "50",
            "dpr": "2",
            "fit": "cover",
            "gravity": "auto",
            "quality": "80",
            "format": "avif",
            "animation": "false",
            "sharpen": "2",
            "onError": "redirect",
            "metadata": "none",
        }
        params, rejected = translate(query)

        assert rejected == set()
        assert set(params) == set(OPTION_TO_DIALECT.values())
        assert params["img-anim"] == "false"
        assert params["img-onerror"] == "redirect"

    def test_dialect_keys_pass_through(self):
        params, rejected = translate({"img-width": "200", "img-trim": "10;20;0;0"})

        assert params == {"img-width": "200", "img-trim": "10;20;0;0"}
        assert rejected == set()

    def test_client_key_wins_over_dialect_key(self):
        params, _ = translate({"width": "300", "img-width": "100"})
        assert params == {"img-width": "300"}

        params, _ = translate({"img-width": "100", "width": "300"})
        assert params == {"img-width": "300"}

    def test_unknown_keys_dropped(self):
        params, rejected = translate({"width": "300", "foo": "bar"})

        assert params == {"img-width": "300"}
        assert rejected == {"foo"}


class TestValidation:
    """Invalid values are dropped, never fatal"""

    @pytest.mark.parametrize("value", ["1", "50", "100", "75.5"])
    def test_quality_in_range_preserved(self, value):
        params, rejected = translate({"quality": value})
        assert params == {"img-quality": value}
        assert rejected == set()

    @pytest.mark.parametrize("value", ["0", "101", "-5", "abc", "", "nan", "inf"])
    def test_quality_out_of_range_dropped(self, value):
        params, rejected = translate({"quality": value})
        assert params == {}
        assert rejected == {"quality"}

    @pytest.mark.parametrize("key", ["width", "height", "dpr"])
    @pytest.mark.parametrize("value", ["0", "-1", "wide"])
    def test_positive_numbers(self, key, value):
        params, rejected = translate({key: value})
        assert params == {}
        assert rejected == {key}

    @pytest.mark.parametrize("value,accepted", [
        ("0", True), ("10", True), ("2.5", True), ("11", False), ("-1", False),
    ])
    def test_sharpen_range(self, value, accepted):
        params, _ = translate({"sharpen": value})
        assert ("img-sharpen" in params) is accepted

    @pytest.mark.parametrize("key,good,bad", [
        ("fit", "scale-down", "stretch"),
        ("format", "jpeg", "bmp"),
        ("metadata", "copyright", "all"),
        ("onError", "redirect", "ignore"),
        ("gravity", "0.5x0.25", "2x2"),
        ("animation", "true", "yes"),
    ])
    def test_enumerated_values(self, key, good, bad):
        assert translate({key: good})[0] == {OPTION_TO_DIALECT[key]: good}
        assert translate({key: bad})[0] == {}

    @pytest.mark.parametrize("value", ["0.5x0.5\n", "center\n", "auto "])
    def test_gravity_rejects_trailing_characters(self, value):
        params, rejected = translate({"gravity": value})
        assert params == {}
        assert rejected == {"gravity"}

    def test_dialect_key_validated_like_client_key(self):
        params, rejected = translate({"img-quality": "500"})
        assert params == {}
        assert rejected == {"img-quality"}

    def test_mixed_valid_and_invalid(self):
        params, rejected = translate({"width": "300", "quality": "0", "fit": "cover"})

        assert params == {"img-width": "300", "img-fit": "cover"}
        assert rejected == {"quality"}


class TestProperties:

    @pytest.mark.parametrize("query", [
        {"width": "300", "format": "webp"},
        {"quality": "500", "fit": "cover", "img-trim": "1"},
        {"img-width": "100", "width": "200", "foo": "bar"},
        {},
    ])
    def test_idempotent(self, query):
        once, _ = translate(query)
        twice, rejected = translate(once)

        assert twice == once
        assert rejected == set()

    def test_is_optimization_key(self):
        assert is_optimization_key("width")
        assert is_optimization_key("img-width")
        assert is_optimization_key("img-anything")
        assert not is_optimization_key("hash")
        assert not is_optimization_key("Width")
