from .config import ConfigError, ConversionOptions, load_config
from .container import ContainerFormatError, ContainerMember, EncodingError, EpubContainer
from .convert import ConversionCancelled, convert, convert_async, convert_file, suggest_output_name
from .emphasis import split_point
from .segments import Segment, SegmentKind, split_segments
from .transform import DocumentTransformer, ExclusionRules, ParseError

__all__ = [
    "ConfigError",
    "ContainerFormatError",
    "ContainerMember",
    "ConversionCancelled",
    "ConversionOptions",
    "DocumentTransformer",
    "EncodingError",
    "EpubContainer",
    "ExclusionRules",
    "ParseError",
    "Segment",
    "SegmentKind",
    "convert",
    "convert_async",
    "convert_file",
    "load_config",
    "split_point",
    "split_segments",
    "suggest_output_name",
]
