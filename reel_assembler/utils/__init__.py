"""Utility functions for the Reel Assembler."""

from reel_assembler.utils.io_utils import create_job_workspace, decode_base64_payload, publish_file, strip_data_uri
from reel_assembler.utils.process_runner import ProcessResult, ProcessRunner, quote_concat_path

__all__ = [
    "create_job_workspace",
    "decode_base64_payload",
    "publish_file",
    "strip_data_uri",
    "ProcessResult",
    "ProcessRunner",
    "quote_concat_path",
]
