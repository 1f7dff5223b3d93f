import pytest

from core.codec import EscapeCodec, IdentityCodec, ZlibCodec, get_codec


@pytest.mark.parametrize("codec", [IdentityCodec(), EscapeCodec(), ZlibCodec()])
def test_codec_is_invertible_for_awkward_text(codec):
    text = '{"title": "a < b && c > d", "note": "literal &lt; stays", "zh": "写作"}'
    assert codec.decompress(codec.compress(text)) == text


def test_escape_codec_hides_markup_characters():
    encoded = EscapeCodec().compress("<b>&</b>")

    assert "<" not in encoded
    assert ">" not in encoded
    assert encoded == "&lt;b&gt;&amp;&lt;/b&gt;"


def test_zlib_codec_shrinks_repetitive_payloads():
    text = '{"todoItems": []}' * 200
    assert len(ZlibCodec().compress(text)) < len(text)


def test_get_codec_by_name():
    assert isinstance(get_codec("identity"), IdentityCodec)
    assert isinstance(get_codec("escape"), EscapeCodec)
    assert isinstance(get_codec("zlib"), ZlibCodec)


def test_get_codec_rejects_unknown_name():
    with pytest.raises(ValueError, match="Unknown codec"):
        get_codec("lz-string")
