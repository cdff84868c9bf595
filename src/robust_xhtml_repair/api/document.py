"""Document value object."""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from robust_xhtml_repair.repair import read_text


@dataclass(frozen=True)
class Document:
    """One XHTML document for the duration of one processing cycle.

    ``text`` is kept exactly as read, newline style included.
    """

    text: str
    path: Optional[Path] = None

    @classmethod
    def from_path(cls, path: Union[str, Path]) -> "Document":
        """Read a document as UTF-8.

        Raises:
            OSError: If the file cannot be read
            UnicodeDecodeError: If the file is not valid UTF-8
        """
        path = Path(path)
        return cls(text=read_text(path), path=path)

    @property
    def name(self) -> str:
        return self.path.name if self.path is not None else "<string>"
