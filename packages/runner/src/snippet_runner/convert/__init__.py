from .converter import (
    ConvertedModule,
    FormatConverter,
    WireFormatConverter,
    compile_reference,
)
from .wire import FLAG_ZLIB, MAGIC, VERSION, WireHeader, encode_wire_module, parse_header

__all__ = [
    "compile_reference",
    "ConvertedModule",
    "encode_wire_module",
    "FLAG_ZLIB",
    "FormatConverter",
    "MAGIC",
    "parse_header",
    "VERSION",
    "WireFormatConverter",
    "WireHeader",
]
