from .logger import setup_logger
from .text import parse_json_response, extract_code_block, truncate_text

__all__ = ["setup_logger", "parse_json_response", "extract_code_block", "truncate_text"]
