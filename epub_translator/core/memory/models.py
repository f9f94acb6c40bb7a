"""Translation memory entry model."""

import hashlib
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def memory_key(source_text: str, source_language: str, target_language: str) -> str:
    """Composite key: language pair plus a stable hash of the source text."""
    digest = hashlib.sha256(source_text.encode('utf-8')).hexdigest()
    return f"{source_language}:{target_language}:{digest}"


def _parse_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value).replace('Z', '+00:00'))
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


@dataclass
class TranslationMemoryEntry:
    source_text: str
    translated_text: str
    source_language: str
    target_language: str
    created_at: datetime = field(default_factory=utc_now)
    last_used: datetime = field(default_factory=utc_now)
    use_count: int = 0
    quality_score: Optional[float] = None
    context: str = ""

    @property
    def key(self) -> str:
        return memory_key(self.source_text, self.source_language, self.target_language)

    def touch(self) -> None:
        """Record a lookup hit."""
        self.last_used = utc_now()
        self.use_count += 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            'source_text': self.source_text,
            'translated_text': self.translated_text,
            'source_language': self.source_language,
            'target_language': self.target_language,
            'created_at': self.created_at.isoformat(),
            'last_used': self.last_used.isoformat(),
            'use_count': self.use_count,
            'quality_score': self.quality_score,
            'context': self.context,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TranslationMemoryEntry':
        """Build an entry from its serialized form. Raises KeyError/ValueError on bad data."""
        return cls(
            source_text=data['source_text'],
            translated_text=data['translated_text'],
            source_language=data['source_language'],
            target_language=data['target_language'],
            created_at=_parse_datetime(data['created_at']) if data.get('created_at') else utc_now(),
            last_used=_parse_datetime(data['last_used']) if data.get('last_used') else utc_now(),
            use_count=int(data.get('use_count', 0)),
            quality_score=data.get('quality_score'),
            context=data.get('context') or "",
        )
