"""Helpers for the "<Root>/a/b/" folder path convention used by the mirror."""

from __future__ import annotations


def normalize_folder_path(folder_path: str | None, root_path: str) -> str:
    """
    Return a folder path rooted at root_path and ending with "/".

    Empty values map to the root itself; paths given without the root prefix
    are treated as relative to it.
    """
    if not folder_path or folder_path.strip("/") == "":
        return root_path
    path = folder_path.strip()
    if not path.endswith("/"):
        path += "/"
    if not path.startswith(root_path):
        path = root_path + path.lstrip("/")
    return path


def folder_segments(folder_path: str, root_path: str) -> list[str]:
    """Names of the folders below the root, outermost first."""
    path = normalize_folder_path(folder_path, root_path)
    rest = path[len(root_path):]
    return [part for part in rest.split("/") if part]


def split_item_path(item_path: str) -> tuple[str, str]:
    """
    Split an item path into (folder_path, name).

    "Documents/Invoices/jan.pdf" -> ("Documents/Invoices/", "jan.pdf")
    "Documents/Invoices/"        -> ("Documents/", "Invoices")
    """
    if not item_path:
        raise ValueError("item_path must be a non-empty string")
    trimmed = item_path[:-1] if item_path.endswith("/") else item_path
    cut = trimmed.rfind("/") + 1
    name = trimmed[cut:]
    if not name:
        raise ValueError(f"item_path has no name component: {item_path!r}")
    return trimmed[:cut], name
