import hashlib
import os
import re
import tempfile
from datetime import date
from typing import NamedTuple, Optional


class CertificatePaths(NamedTuple):
    root: str
    rel_path: str
    abs_path: str


def ensure_dir(path: str) -> None:
    """Create directory if missing (mkdir -p equivalent)."""
    os.makedirs(path, exist_ok=True)


def write_atomic(path: str, data, mode: str = "wb") -> None:
    """Write data to a temporary file then atomically rename to target path."""
    dir_path = os.path.dirname(path)
    ensure_dir(dir_path)
    fd, tmp_path = tempfile.mkstemp(dir=dir_path)
    try:
        with os.fdopen(fd, mode) as f:
            f.write(data)
        os.replace(tmp_path, path)
    finally:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)


def sha256_file(path: str) -> str:
    digest = hashlib.sha256()
    with open(path, "rb") as fh:
        for chunk in iter(lambda: fh.read(65536), b""):
            digest.update(chunk)
    return digest.hexdigest()


def slugify(value: Optional[str], fallback: str = "certificate") -> str:
    slug = re.sub(r"[^A-Za-z0-9 _-]+", "", value or "")
    slug = re.sub(r"[\s_]+", "-", slug.strip()).lower()
    return slug or fallback


def certificate_paths(
    certificates_root: str,
    template: str,
    filename: str,
    issued: Optional[date] = None,
) -> CertificatePaths:
    """``<root>/<year>/<template-slug>/<filename>`` split into root, relative and absolute."""
    year = (issued or date.today()).year
    rel_path = os.path.join(str(year), slugify(template, "template"), os.path.basename(filename))
    return CertificatePaths(certificates_root, rel_path, os.path.join(certificates_root, rel_path))
