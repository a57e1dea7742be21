"""Static, line-delimited input provider."""

from typing import Iterable, List, Optional, Sequence, Union

from webfuzz.inputs.base import DEFAULT_KEYWORD, InputProvider


class Wordlist(InputProvider):
    """
    Values come from a file (one per line) or from an in-memory sequence.

    Options:
      - ignore_comments: lines starting with '#' are skipped, and trailing
        ' #...' comments are stripped.
      - extensions: for the FUZZ keyword every word is emitted as-is and then
        once per extension appended.
      - dirsearch_compat: words holding '%EXT%' are expanded once per
        extension instead; other words are kept unchanged.
    """

    name = "wordlist"

    def __init__(self, source: Union[str, Sequence[Union[str, bytes]]],
                 keyword: str = DEFAULT_KEYWORD, template: str = "",
                 encoders: str = "", ignore_comments: bool = False,
                 extensions: Optional[List[str]] = None,
                 dirsearch_compat: bool = False):
        super().__init__(keyword=keyword, template=template, encoders=encoders)
        self.source = source if isinstance(source, str) else "<memory>"
        self.ignore_comments = ignore_comments
        self.extensions = list(extensions or [])
        self.dirsearch_compat = dirsearch_compat

        if isinstance(source, str):
            raw = self._read(source)
        else:
            raw = [v.encode() if isinstance(v, str) else v for v in source]
        self._data: List[bytes] = list(self._expand(raw))

    @staticmethod
    def _read(filename: str) -> List[bytes]:
        with open(filename, "rb") as f:
            return f.read().splitlines()

    def _expand(self, words: Iterable[bytes]) -> Iterable[bytes]:
        exts = [e.encode() for e in self.extensions]
        for w in words:
            if self.ignore_comments:
                w = _strip_comment(w)
                if not w:
                    continue
            if self.dirsearch_compat and exts:
                if b"%EXT%" in w:
                    for e in exts:
                        yield w.replace(b"%EXT%", e.lstrip(b"."))
                else:
                    yield w
                continue
            yield w
            if self.keyword == DEFAULT_KEYWORD:
                for e in exts:
                    yield w + e

    def cardinality(self) -> int:
        return len(self._data)

    def value_at(self, index: int) -> bytes:
        if index < 0:
            raise IndexError(index)
        return self._data[index]


def _strip_comment(word: bytes) -> bytes:
    if word.startswith(b"#"):
        return b""
    pos = word.find(b" #")
    if pos >= 0:
        word = word[:pos]
    return word.strip()
