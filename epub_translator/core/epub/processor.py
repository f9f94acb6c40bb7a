"""
EPUB document processor

Loads an EPUB into the document model (metadata, spine chapters with their
paragraphs, resources, navigation, cover), validates it, and writes the
translated document back out as a new EPUB container.
"""
import os
import posixpath
import tempfile
import zipfile
from pathlib import PurePosixPath
from typing import Dict, List, Optional, Tuple
from urllib.parse import unquote

from lxml import etree

from ...config import NAMESPACES
from ...utils.unified_logger import LogType, UnifiedLogger, get_logger
from .container import (
    CONTAINER_XML,
    EPUB_MIMETYPE,
    MIMETYPE_ENTRY,
    extract_archive,
    find_opf_path,
    read_text_file,
    repackage_directory,
    update_language_metadata,
    write_text_file,
)
from .exceptions import (
    ArchiveAssemblyError,
    ChapterIndexError,
    EpubError,
    EpubLoadError,
    InvalidStructureError,
)
from .extractor import ParagraphExtractor
from .models import (
    EpubChapter,
    EpubDocument,
    EpubNavigationItem,
    EpubResource,
    mime_type_for,
    resource_type_for,
)
from .reconstructor import ChapterReconstructor
from .xml_helpers import collect_text, is_element, local_name, parse_markup

CHAPTER_MEDIA_TYPES = ('application/xhtml+xml', 'text/html')
EPUB_TYPE_ATTRIBUTE = f"{{{NAMESPACES['epub']}}}type"


def _decode(data: bytes) -> str:
    return data.decode('utf-8-sig', errors='replace')


def _resolve_href(base_dir: str, href: str) -> str:
    """Container-relative path of an href found in a document located in base_dir."""
    href = unquote(href.split('#', 1)[0])
    return posixpath.normpath(posixpath.join(base_dir, href)) if href else ''


class EpubProcessor:
    """Load, validate, save and preview EPUB documents."""

    def __init__(self,
                 extractor: Optional[ParagraphExtractor] = None,
                 reconstructor: Optional[ChapterReconstructor] = None,
                 logger: Optional[UnifiedLogger] = None):
        self.logger = logger or get_logger()
        self.extractor = extractor or ParagraphExtractor()
        self.reconstructor = reconstructor or ChapterReconstructor(self.logger)

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def load(self, file_path: str) -> EpubDocument:
        """
        Load an EPUB file into an EpubDocument.

        Raises:
            EpubLoadError: file missing, unreadable or not a zip archive
            InvalidStructureError: no package document or no manifest/spine
        """
        if not os.path.isfile(file_path):
            raise EpubLoadError(f"EPUB file not found: {file_path}", file_path)

        try:
            with zipfile.ZipFile(file_path, 'r') as archive:
                document = self._load_from_archive(archive, file_path)
        except zipfile.BadZipFile as e:
            raise EpubLoadError(f"Not a valid EPUB archive: {e}", file_path) from e
        except OSError as e:
            raise EpubLoadError(f"Could not read EPUB file: {e}", file_path) from e

        self.logger.info(
            f"Loaded '{document.title or os.path.basename(file_path)}': "
            f"{len(document.chapters)} chapters, {document.paragraph_count} paragraphs, "
            f"{len(document.resources)} resources",
            LogType.FILE_OPERATION
        )
        return document

    def _load_from_archive(self, archive: zipfile.ZipFile, file_path: str) -> EpubDocument:
        names = set(archive.namelist())
        opf_path = self._find_opf_in_archive(archive, names)
        if not opf_path:
            raise InvalidStructureError("No package document (.opf) found in EPUB")

        try:
            opf_root = etree.fromstring(archive.read(opf_path), etree.XMLParser(recover=True))
        except etree.XMLSyntaxError as e:
            raise InvalidStructureError(f"Package document could not be parsed: {e}") from e
        if opf_root is None:
            raise InvalidStructureError("Package document is empty")

        manifest = opf_root.find('.//opf:manifest', namespaces=NAMESPACES)
        spine = opf_root.find('.//opf:spine', namespaces=NAMESPACES)
        if manifest is None or spine is None:
            raise InvalidStructureError("Manifest or spine missing in package document")

        opf_dir = posixpath.dirname(opf_path)
        items = self._read_manifest(manifest, opf_dir)

        document = EpubDocument(file_path=file_path, opf_path=opf_path)
        title, author, language = self._read_metadata(opf_root)
        document.title = title
        document.author = author
        document.source_language = language

        document.navigation = self._read_navigation(archive, names, items, spine)
        nav_titles = self._flatten_navigation(document.navigation)

        chapter_paths = set()
        for itemref in spine.findall('opf:itemref', namespaces=NAMESPACES):
            item = items.get(itemref.get('idref', ''))
            if item is None or item['media_type'] not in CHAPTER_MEDIA_TYPES:
                continue
            path = item['path']
            if path not in names:
                self.logger.warning(f"Spine item '{path}' is missing from the archive, skipped")
                continue
            chapter = self._build_chapter(item['id'], path, _decode(archive.read(path)),
                                          nav_titles.get(path))
            document.chapters.append(chapter)
            chapter_paths.add(path)

        ids_by_path = {item['path']: item_id for item_id, item in items.items()}
        media_by_path = {item['path']: item['media_type'] for item in items.values()}
        for name in sorted(names):
            if name.endswith('/') or name in chapter_paths or name in (MIMETYPE_ENTRY, opf_path):
                continue
            document.resources[name] = EpubResource(
                id=ids_by_path.get(name, name),
                path=name,
                media_type=media_by_path.get(name) or mime_type_for(name),
                content=archive.read(name),
                resource_type=resource_type_for(name),
            )

        cover_path = self._find_cover_path(opf_root, items)
        if cover_path and cover_path in names:
            document.cover_image = archive.read(cover_path)

        return document

    def _find_opf_in_archive(self, archive: zipfile.ZipFile, names) -> Optional[str]:
        if CONTAINER_XML in names:
            try:
                root = etree.fromstring(archive.read(CONTAINER_XML))
                rootfile = root.find('.//container:rootfile', namespaces=NAMESPACES)
                if rootfile is not None and rootfile.get('full-path') in names:
                    return rootfile.get('full-path')
            except etree.XMLSyntaxError:
                self.logger.warning("META-INF/container.xml is malformed, searching for the package document")
        return next((name for name in sorted(names) if name.endswith('.opf')), None)

    @staticmethod
    def _read_manifest(manifest, opf_dir: str) -> Dict[str, Dict[str, str]]:
        items = {}
        for item in manifest.findall('opf:item', namespaces=NAMESPACES):
            item_id = item.get('id')
            href = item.get('href')
            if not item_id or not href:
                continue
            items[item_id] = {
                'id': item_id,
                'path': _resolve_href(opf_dir, href),
                'media_type': item.get('media-type', ''),
                'properties': item.get('properties', ''),
            }
        return items

    @staticmethod
    def _read_metadata(opf_root) -> Tuple[str, str, str]:
        def texts(tag: str) -> List[str]:
            return [el.text.strip() for el in opf_root.iterfind(f'.//dc:{tag}', namespaces=NAMESPACES)
                    if el.text and el.text.strip()]

        titles = texts('title')
        languages = texts('language')
        return (titles[0] if titles else '',
                '; '.join(texts('creator')),
                languages[0] if languages else '')

    def _build_chapter(self, chapter_id: str, path: str, markup: str,
                       nav_title: Optional[str]) -> EpubChapter:
        chapter = EpubChapter(
            id=chapter_id,
            title=nav_title or PurePosixPath(path).stem,
            original_path=path,
            original_content=markup,
        )
        chapter.paragraphs = self.extractor.extract(markup, chapter_id)
        return chapter

    def _read_navigation(self, archive: zipfile.ZipFile, names, items: Dict[str, Dict[str, str]],
                         spine) -> List[EpubNavigationItem]:
        nav_item = next((item for item in items.values() if 'nav' in item['properties'].split()), None)
        if nav_item and nav_item['path'] in names:
            navigation = self._parse_nav_document(_decode(archive.read(nav_item['path'])),
                                                  posixpath.dirname(nav_item['path']))
            if navigation:
                return navigation

        ncx_item = items.get(spine.get('toc', '')) or next(
            (item for item in items.values() if item['media_type'] == 'application/x-dtbncx+xml'), None)
        if ncx_item and ncx_item['path'] in names:
            return self._parse_ncx(archive.read(ncx_item['path']), posixpath.dirname(ncx_item['path']))
        return []

    def _parse_nav_document(self, markup: str, base_dir: str) -> List[EpubNavigationItem]:
        tree, _ = parse_markup(markup)
        navs = [el for el in tree.getroot().iter() if is_element(el) and local_name(el) == 'nav']
        toc = next((nav for nav in navs if nav.get(EPUB_TYPE_ATTRIBUTE) == 'toc'), navs[0] if navs else None)
        if toc is None:
            return []
        ol = next((child for child in toc.iter() if is_element(child) and local_name(child) == 'ol'), None)
        return self._parse_nav_list(ol, base_dir) if ol is not None else []

    def _parse_nav_list(self, ol, base_dir: str) -> List[EpubNavigationItem]:
        entries = []
        for li in ol:
            if not is_element(li) or local_name(li) != 'li':
                continue
            anchor = next((c for c in li if is_element(c) and local_name(c) in ('a', 'span')), None)
            sublist = next((c for c in li if is_element(c) and local_name(c) == 'ol'), None)
            entries.append(EpubNavigationItem(
                title=' '.join(collect_text(anchor).split()) if anchor is not None else '',
                href=_resolve_href(base_dir, anchor.get('href', '')) if anchor is not None else '',
                children=self._parse_nav_list(sublist, base_dir) if sublist is not None else [],
            ))
        return entries

    def _parse_ncx(self, data: bytes, base_dir: str) -> List[EpubNavigationItem]:
        root = etree.fromstring(data, etree.XMLParser(recover=True))
        if root is None:
            return []
        nav_map = root.find('ncx:navMap', namespaces=NAMESPACES)
        return self._parse_nav_points(nav_map, base_dir) if nav_map is not None else []

    def _parse_nav_points(self, parent, base_dir: str) -> List[EpubNavigationItem]:
        entries = []
        for point in parent.findall('ncx:navPoint', namespaces=NAMESPACES):
            label = point.findtext('ncx:navLabel/ncx:text', default='', namespaces=NAMESPACES)
            content = point.find('ncx:content', namespaces=NAMESPACES)
            entries.append(EpubNavigationItem(
                title=label.strip(),
                href=_resolve_href(base_dir, content.get('src', '')) if content is not None else '',
                children=self._parse_nav_points(point, base_dir),
            ))
        return entries

    @staticmethod
    def _flatten_navigation(navigation: List[EpubNavigationItem]) -> Dict[str, str]:
        """First navigation title seen for each target document."""
        titles: Dict[str, str] = {}
        stack = list(reversed(navigation))
        while stack:
            entry = stack.pop()
            if entry.href and entry.title and entry.href not in titles:
                titles[entry.href] = entry.title
            stack.extend(reversed(entry.children))
        return titles

    @staticmethod
    def _find_cover_path(opf_root, items: Dict[str, Dict[str, str]]) -> Optional[str]:
        for item in items.values():
            if 'cover-image' in item['properties'].split():
                return item['path']
        meta = opf_root.find('.//opf:metadata/opf:meta[@name="cover"]', namespaces=NAMESPACES)
        if meta is not None and meta.get('content') in items:
            return items[meta.get('content')]['path']
        return None

    async def extract_chapters(self, document: EpubDocument) -> List[EpubChapter]:
        """Re-read the chapters of a document from its source file."""
        reloaded = await self.load(document.file_path)
        return reloaded.chapters

    async def extract_metadata(self, file_path: str) -> Dict[str, str]:
        document = await self.load(file_path)
        return {
            'title': document.title,
            'author': document.author,
            'language': document.source_language,
        }

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate_structure(self, document: Optional[EpubDocument]) -> bool:
        """Check a loaded document before any translation work starts."""
        if document is None:
            self.logger.error("Document is null")
            return False
        if not document.file_path or not os.path.isfile(document.file_path):
            self.logger.error(f"Document source file is missing: {document.file_path}")
            return False
        if not document.chapters:
            self.logger.error("Document contains no chapters")
            return False

        empty = [chapter.original_path for chapter in document.chapters if not chapter.paragraphs]
        if empty:
            self.logger.warning(
                f"{len(empty)} chapter(s) contain no translatable paragraphs: {', '.join(empty)}"
            )
        return True

    def validate_output(self, file_path: str) -> bool:
        """Check that a written file is a well-formed EPUB container."""
        if not os.path.isfile(file_path):
            self.logger.error(f"Output file not found: {file_path}")
            return False
        try:
            with zipfile.ZipFile(file_path, 'r') as archive:
                infos = archive.infolist()
                if not infos or infos[0].filename != MIMETYPE_ENTRY:
                    self.logger.error("Output EPUB does not start with the mimetype entry")
                    return False
                if infos[0].compress_type != zipfile.ZIP_STORED:
                    self.logger.error("Output EPUB mimetype entry is compressed")
                    return False
                if archive.read(MIMETYPE_ENTRY).decode('ascii', errors='replace').strip() != EPUB_MIMETYPE:
                    self.logger.error("Output EPUB has an unexpected mimetype")
                    return False
                if not any(info.filename.endswith('.opf') for info in infos):
                    self.logger.error("Output EPUB has no package document")
                    return False
        except zipfile.BadZipFile as e:
            self.logger.error(f"Output file is not a valid archive: {e}")
            return False
        return True

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    def generate_preview(self, document: EpubDocument, chapter_index: int = 0) -> str:
        """Rebuilt markup of a single chapter."""
        if chapter_index < 0 or chapter_index >= len(document.chapters):
            raise ChapterIndexError(chapter_index, len(document.chapters))
        return self.reconstructor.rebuild(document.chapters[chapter_index])

    async def save_translated_epub(self, document: EpubDocument, output_path: str,
                                   target_language: Optional[str] = None) -> bool:
        """
        Write the translated document as a new EPUB.

        The source archive is extracted to a temporary directory, every chapter
        is rebuilt and written in place, the declared language is rewritten and
        the directory is repackaged. Any chapter that cannot be written aborts
        the whole save; nothing is produced in that case.

        Returns:
            True if the output file was written
        """
        language = target_language or document.target_language
        with tempfile.TemporaryDirectory(prefix='epub_translate_') as temp_dir:
            try:
                extract_archive(document.file_path, temp_dir)

                for chapter in document.chapters:
                    await self._write_chapter(chapter, temp_dir)

                opf_file = find_opf_path(temp_dir)
                if opf_file and language:
                    opf_content = await read_text_file(opf_file)
                    await write_text_file(opf_file, update_language_metadata(opf_content, language))
                elif not opf_file:
                    raise ArchiveAssemblyError("Package document missing from extracted EPUB")

                repackage_directory(temp_dir, output_path)
            except (EpubError, OSError) as e:
                self.logger.error(f"Failed to save translated EPUB: {e}", LogType.ERROR_DETAIL,
                                  {'details': getattr(e, 'path', None) or output_path})
                return False

        self.logger.info(f"Translated EPUB saved: '{output_path}'", LogType.FILE_OPERATION)
        return True

    async def _write_chapter(self, chapter: EpubChapter, temp_dir: str) -> None:
        target = os.path.join(temp_dir, *chapter.original_path.split('/'))
        if not os.path.isfile(target):
            raise ArchiveAssemblyError(
                f"Chapter file '{chapter.original_path}' not found in extracted EPUB", chapter.original_path
            )

        content = self.reconstructor.rebuild(chapter)
        await write_text_file(target, content)

        written = await read_text_file(target)
        if written != content:
            raise ArchiveAssemblyError(
                f"Chapter file '{chapter.original_path}' did not verify after writing", chapter.original_path
            )
        self.logger.debug(f"Wrote chapter '{chapter.original_path}'", LogType.FILE_OPERATION)
