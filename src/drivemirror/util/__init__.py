from .ids import new_channel_id, new_channel_token, new_uuid
from .mime import (
    DEFAULT_MIME,
    FOLDER_MIME,
    ONEDRIVE_FOLDER_MIME,
    guess_mime,
    is_download_disallowed,
    is_folder,
    is_google_app,
)
from .paths import folder_segments, normalize_folder_path, split_item_path
from .time import (
    from_epoch_millis,
    normalize_dt,
    now_utc,
    parse_optional_rfc3339,
    parse_rfc3339,
    to_epoch_millis,
    to_rfc3339,
)

__all__ = [
    "new_uuid",
    "new_channel_id",
    "new_channel_token",
    "DEFAULT_MIME",
    "FOLDER_MIME",
    "ONEDRIVE_FOLDER_MIME",
    "guess_mime",
    "is_folder",
    "is_google_app",
    "is_download_disallowed",
    "normalize_folder_path",
    "folder_segments",
    "split_item_path",
    "now_utc",
    "parse_rfc3339",
    "parse_optional_rfc3339",
    "to_rfc3339",
    "from_epoch_millis",
    "to_epoch_millis",
    "normalize_dt",
]
