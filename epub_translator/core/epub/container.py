"""
EPUB container boundary: extract an archive to a directory, read and write
chapter files, rewrite the declared language and repackage the directory.
"""
import os
import re
import zipfile
from pathlib import Path
from typing import Optional

import aiofiles
from lxml import etree

from ...config import NAMESPACES
from .exceptions import ArchiveAssemblyError, EpubLoadError

EPUB_MIMETYPE = 'application/epub+zip'
MIMETYPE_ENTRY = 'mimetype'
CONTAINER_XML = 'META-INF/container.xml'

_LANGUAGE_TAG = re.compile(r'<dc:language>[^<]+</dc:language>')


def extract_archive(archive_path: str, destination: str) -> None:
    """Extract every member of an EPUB archive, refusing paths that escape `destination`."""
    destination_root = Path(destination).resolve()
    try:
        with zipfile.ZipFile(archive_path, 'r') as archive:
            for member in archive.namelist():
                target = (destination_root / member).resolve()
                if destination_root != target and destination_root not in target.parents:
                    raise EpubLoadError(f"Unsafe path in archive: {member}", archive_path)
            archive.extractall(destination_root)
    except zipfile.BadZipFile as e:
        raise EpubLoadError(f"Not a valid EPUB archive: {e}", archive_path) from e
    except FileNotFoundError as e:
        raise EpubLoadError(f"EPUB file not found: {archive_path}", archive_path) from e


async def read_text_file(path: str) -> str:
    """Read a UTF-8 text file, dropping a byte-order mark if present."""
    async with aiofiles.open(path, 'r', encoding='utf-8-sig', newline='') as f:
        return await f.read()


async def write_text_file(path: str, content: str) -> None:
    """Write text as UTF-8 without a byte-order mark."""
    async with aiofiles.open(path, 'w', encoding='utf-8', newline='') as f:
        await f.write(content)


def update_language_metadata(opf_content: str, target_language: str) -> str:
    """Rewrite every <dc:language>...</dc:language> to the target language, leaving the rest untouched."""
    return _LANGUAGE_TAG.sub(f'<dc:language>{target_language}</dc:language>', opf_content)


def find_opf_path(extracted_dir: str) -> Optional[str]:
    """
    Locate the package document in an extracted EPUB.

    META-INF/container.xml is authoritative; if it is absent or unreadable
    the directory tree is searched for the first *.opf file.
    """
    container_path = os.path.join(extracted_dir, *CONTAINER_XML.split('/'))
    if os.path.exists(container_path):
        try:
            root = etree.parse(container_path).getroot()
            rootfile = root.find('.//container:rootfile', namespaces=NAMESPACES)
            if rootfile is not None and rootfile.get('full-path'):
                candidate = os.path.join(extracted_dir, *rootfile.get('full-path').split('/'))
                if os.path.exists(candidate):
                    return candidate
        except etree.XMLSyntaxError:
            pass

    for root_dir, _, files in sorted(os.walk(extracted_dir)):
        for file in sorted(files):
            if file.endswith('.opf'):
                return os.path.join(root_dir, file)
    return None


def repackage_directory(source_dir: str, output_path: str) -> None:
    """
    Zip a directory into an EPUB: 'mimetype' first and stored uncompressed,
    everything else deflated.
    """
    output_parent = os.path.dirname(os.path.abspath(output_path))
    os.makedirs(output_parent, exist_ok=True)
    if os.path.exists(output_path):
        os.remove(output_path)

    try:
        with zipfile.ZipFile(output_path, 'w', zipfile.ZIP_DEFLATED) as epub_zip:
            mimetype_path = os.path.join(source_dir, MIMETYPE_ENTRY)
            if os.path.exists(mimetype_path):
                epub_zip.write(mimetype_path, MIMETYPE_ENTRY, compress_type=zipfile.ZIP_STORED)
            else:
                epub_zip.writestr(MIMETYPE_ENTRY, EPUB_MIMETYPE, compress_type=zipfile.ZIP_STORED)

            for root_path, dirs, files in os.walk(source_dir):
                dirs.sort()
                for file_item in sorted(files):
                    file_path_abs = os.path.join(root_path, file_item)
                    arcname = os.path.relpath(file_path_abs, source_dir).replace(os.sep, '/')
                    if arcname == MIMETYPE_ENTRY:
                        continue
                    epub_zip.write(file_path_abs, arcname)
    except OSError as e:
        raise ArchiveAssemblyError(f"Could not write EPUB archive: {e}", output_path) from e
