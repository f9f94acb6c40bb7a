"""
Custom exceptions for EPUB loading, reconstruction and packaging.

Input errors abort a run before translation starts, reconstruction errors
are absorbed per chapter, and archive-assembly errors fail the save.
"""


class EpubError(Exception):
    """Base exception for all EPUB errors."""
    pass


class EpubLoadError(EpubError):
    """Raised when the input file is missing, unreadable or not an EPUB archive.

    Attributes:
        file_path: The file that could not be loaded
    """
    def __init__(self, message: str, file_path: str = None):
        super().__init__(message)
        self.file_path = file_path


class InvalidStructureError(EpubError):
    """Raised when the package document is missing or declares no chapters."""
    pass


class ChapterIndexError(EpubError, IndexError):
    """Raised when a preview is requested for a chapter index that does not exist.

    Attributes:
        index: Requested index
        chapter_count: Number of chapters in the document
    """
    def __init__(self, index: int, chapter_count: int):
        super().__init__(
            f"Chapter index {index} is out of range (document has {chapter_count} chapters)"
        )
        self.index = index
        self.chapter_count = chapter_count


class NodeResolutionError(EpubError):
    """Raised when a paragraph cannot be located in its chapter markup.

    Attributes:
        paragraph_id: Identifier of the paragraph
        node_path: Structural address that failed to resolve
    """
    def __init__(self, message: str, paragraph_id: str = None, node_path: str = None):
        super().__init__(message)
        self.paragraph_id = paragraph_id
        self.node_path = node_path


class ArchiveAssemblyError(EpubError):
    """Raised when the translated container cannot be assembled.

    Attributes:
        path: File that was missing or could not be written
    """
    def __init__(self, message: str, path: str = None):
        super().__init__(message)
        self.path = path
