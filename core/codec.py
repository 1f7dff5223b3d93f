"""
Value codecs applied to serialized JSON before it reaches the store.

The only law a codec must satisfy is decompress(compress(s)) == s.
"""
import base64
import zlib
from abc import ABC, abstractmethod
from typing import Dict, Type


class Codec(ABC):
    name = "abstract"

    @abstractmethod
    def compress(self, text: str) -> str:
        pass

    @abstractmethod
    def decompress(self, text: str) -> str:
        pass


class IdentityCodec(Codec):
    name = "identity"

    def compress(self, text: str) -> str:
        return text

    def decompress(self, text: str) -> str:
        return text


class EscapeCodec(Codec):
    """
    Escapes markup characters. No size benefit.

    '&' is escaped first so that text already containing '&lt;' survives the
    round trip.
    """

    name = "escape"

    def compress(self, text: str) -> str:
        return text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")

    def decompress(self, text: str) -> str:
        return text.replace("&lt;", "<").replace("&gt;", ">").replace("&amp;", "&")


class ZlibCodec(Codec):
    """Real compression; output is base64 so it stays a plain string."""

    name = "zlib"

    def __init__(self, level: int = 6):
        self.level = level

    def compress(self, text: str) -> str:
        packed = zlib.compress(text.encode("utf-8"), self.level)
        return base64.b64encode(packed).decode("ascii")

    def decompress(self, text: str) -> str:
        packed = base64.b64decode(text.encode("ascii"), validate=True)
        return zlib.decompress(packed).decode("utf-8")


CODECS: Dict[str, Type[Codec]] = {
    IdentityCodec.name: IdentityCodec,
    EscapeCodec.name: EscapeCodec,
    ZlibCodec.name: ZlibCodec,
}


def get_codec(name: str) -> Codec:
    try:
        return CODECS[name]()
    except KeyError:
        raise ValueError(f"Unknown codec: {name} (expected one of {', '.join(sorted(CODECS))})")
