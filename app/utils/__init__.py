"""SILK Voice Converter - Utility modules."""

from app.utils.atomic_io import AtomicFileWriter, atomic_stream_to_file, atomic_write_bytes
from app.utils.hashing import codec_spec_alias, output_cache_key, sha256_bytes, sha256_file
from app.utils.paths import (
    download_input_path,
    ensure_staging_dirs,
    output_silk_path,
    upload_input_path,
)

__all__ = [
    # atomic_io
    "AtomicFileWriter",
    "atomic_write_bytes",
    "atomic_stream_to_file",
    # hashing
    "sha256_file",
    "sha256_bytes",
    "codec_spec_alias",
    "output_cache_key",
    # paths
    "ensure_staging_dirs",
    "upload_input_path",
    "download_input_path",
    "output_silk_path",
]
