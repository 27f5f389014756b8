"""
Upload boundary — only plain-text-like files get through, decoded in full.
"""
import logging
from pathlib import PurePath

from annotator.config.constants import SUPPORTED_EXTENSIONS
from annotator.labeling.errors import UnsupportedFileType

logger = logging.getLogger(__name__)


def check_extension(name: str) -> None:
    suffix = PurePath(name).suffix.lower()
    if suffix not in SUPPORTED_EXTENSIONS:
        logger.warning("Rejected upload '%s': extension '%s' not supported", name, suffix)
        raise UnsupportedFileType(name)


def read_text_upload(name: str, raw: bytes) -> str:
    """
    Validate *name* and decode *raw* as UTF-8 (a leading BOM is dropped).

    Raises:
        UnsupportedFileType: Extension not in SUPPORTED_EXTENSIONS.
        UnicodeDecodeError: Content is not valid UTF-8.
    """
    check_extension(name)
    return raw.decode("utf-8-sig")
