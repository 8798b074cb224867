"""Shared test fixtures: small JS/TS repositories on disk."""

import os

# Dummy API keys so nothing reaches a real LLM provider.
os.environ["ANTHROPIC_API_KEY"] = "for-tests-only"
os.environ["OPENAI_API_KEY"] = "for-tests-only"

from pathlib import Path

import pytest

from rootscout.chunking.parser import ParserProbe

USER_LIST_TSX = """\
import { formatName } from '../utils/format';
import React from 'react';

export interface UserListProps {
  users: User[];
}

export function renderList(users) {
  return users.map((u) => formatName(u));
}

export function UserList({ users }: UserListProps) {
  const items = renderList(users);
  return <ul>{items}</ul>;
}
"""

FORMAT_TS = """\
export const formatName = (user) => {
  return `${user.first} ${user.last}`;
};

export const SEPARATORS = [
  '/',
  '{}',
];
"""

APP_TSX = """\
import { UserList } from './components/UserList';

export default function App() {
  return <UserList users={[]} />;
}
"""

REPORT_TEXT = """\
User list crashes when loading
TypeError: Cannot read properties of undefined (reading 'map')
    at renderList (src/components/UserList.tsx:9:16)
    at UserList (src/components/UserList.tsx:13:17)
"""


def write_files(root: Path, files: dict[str, str]) -> Path:
    """Write ``{relative path: content}`` under ``root``."""
    for rel, content in files.items():
        target = root / rel
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
    return root


@pytest.fixture
def ts_repo(tmp_path: Path) -> Path:
    """A tiny React project with one buggy component."""
    return write_files(
        tmp_path,
        {
            "src/components/UserList.tsx": USER_LIST_TSX,
            "src/utils/format.ts": FORMAT_TS,
            "src/App.tsx": APP_TSX,
            "src/components/UserList.test.tsx": "test('renders', () => {});\n",
            "node_modules/react/index.js": "module.exports = {};\n",
            ".cache/stale.ts": "export const stale = 1;\n",
            "README.md": "# demo\n",
        },
    )


@pytest.fixture
def regex_probe() -> ParserProbe:
    """A probe whose grammar cannot load, forcing the regex chunker."""
    return ParserProbe("rootscout_missing_grammar", "language")
