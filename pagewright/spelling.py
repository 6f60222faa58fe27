from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from .content import FENCE_RE, WORD_RE, list_content_files, parse_front_matter

URL_PREFIXES = ("http://", "https://", "mailto:")


@dataclass(frozen=True)
class Misspelling:
    path: Path
    line: int
    word: str

    def __str__(self) -> str:
        return f"{self.path}:{self.line}: {self.word}"


def load_dictionary(path: Path) -> set[str]:
    words = set()
    for line in path.read_text(encoding="utf-8").splitlines():
        word = line.strip()
        if word and not word.startswith("#"):
            words.add(word.lower())
    return words


def check_text(path: Path, text: str, dictionary: set[str]) -> list[Misspelling]:
    _, body = parse_front_matter(text)
    lines = text.lstrip("\ufeff").splitlines()
    offset = 0
    if lines and lines[0].strip() == "---":
        offset = next(i for i in range(1, len(lines)) if lines[i].strip() == "---") + 1
    found = []
    in_fence = False
    for number, line in enumerate(body.splitlines(), start=offset + 1):
        if FENCE_RE.match(line):
            in_fence = not in_fence
            continue
        if in_fence:
            continue
        for token in line.split():
            if token.strip("<>()[]").startswith(URL_PREFIXES) or token.startswith("`"):
                continue
            for word in WORD_RE.findall(token):
                if word.isdigit() or word.lower() in dictionary:
                    continue
                found.append(Misspelling(path, number, word))
    return found


def check_files(content_dir: Path, dictionary: set[str]) -> list[Misspelling]:
    found = []
    for path in list_content_files(content_dir):
        try:
            text = path.read_text(encoding="utf-8")
            found.extend(check_text(path, text, dictionary))
        except ValueError:
            # The build reports unreadable files and broken front matter.
            continue
    return found
