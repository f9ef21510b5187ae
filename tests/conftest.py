"""Pytest configuration and fixtures for NextGraph CLI tests."""

import shutil
import tempfile
from pathlib import Path
from typing import Callable, Dict, Generator

import pytest


@pytest.fixture(autouse=True)
def _isolated_config(tmp_path_factory, monkeypatch):
    """Point the user-level config at an empty temporary directory."""
    home = tmp_path_factory.mktemp("nextgraph_home")
    monkeypatch.setattr("nextgraph_cli.config.BASE_DIR", home)
    monkeypatch.setattr("nextgraph_cli.config.CONFIG_FILE", home / "config.toml")


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    tmp = Path(tempfile.mkdtemp())
    yield tmp
    shutil.rmtree(tmp, ignore_errors=True)


def write_files(root: Path, files: Dict[str, str]) -> Path:
    for rel, content in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    return root


USERS_ROUTE = '''import { NextResponse } from "next/server";

export async function GET() {
  return NextResponse.json([]);
}

export async function POST(request) {
  const body = await request.json();
  return NextResponse.json(body, { status: 201 });
}
'''


@pytest.fixture
def make_project(temp_dir: Path) -> Callable[[Dict[str, str]], Path]:
    """Factory writing ``{relative path: content}`` under a fresh project root."""

    def _make(files: Dict[str, str]) -> Path:
        root = temp_dir / "project"
        root.mkdir(exist_ok=True)
        return write_files(root, files)

    return _make


@pytest.fixture
def nextjs_project(make_project) -> Path:
    """Minimal App Router project: two pages and one API route."""
    return make_project({
        "app/page.js": "export default function Home() {\n  return <main>Home</main>;\n}\n",
        "app/(marketing)/about/page.js": (
            "export default function About() {\n  return <main>About</main>;\n}\n"
        ),
        "app/api/users/route.js": USERS_ROUTE,
    })


@pytest.fixture
def sample_schema() -> str:
    return '''datasource db {
  provider = "postgresql"
  url      = env("DATABASE_URL")
}

generator client {
  provider = "prisma-client-js"
}

enum Role {
  USER
  ADMIN
}

model User {
  id        Int      @id @default(autoincrement())
  email     String   @unique
  name      String?
  role      Role     @default(USER)
  posts     Post[]
  createdAt DateTime @default(now())
}

model Post {
  id        Int     @id @default(autoincrement())
  title     String
  published Boolean @default(false)
  author    User    @relation(fields: [authorId], references: [id])
  authorId  Int

  @@index([authorId])
}
'''


@pytest.fixture
def schema_file(temp_dir: Path, sample_schema: str) -> Path:
    path = temp_dir / "schema.prisma"
    path.write_text(sample_schema, encoding="utf-8")
    return path


FULL_PROJECT = {
    "package.json": '{"name": "shop", "private": true}\n',
    "next.config.mjs": "export default {};\n",
    "middleware.ts": "export function middleware() {}\n",
    ".env.local": "DATABASE_URL=postgres://localhost/shop\n",
    ".gitignore": "generated/\n*.log\n",
    "generated/client.js": "export const x = 1;\n",
    "debug.log": "noise\n",
    "node_modules/react/index.js": "module.exports = {};\n",
    "app/layout.tsx": (
        'import "./globals.css";\n'
        'import Header from "@/components/Header";\n\n'
        "export default function RootLayout({ children }: { children: React.ReactNode }) {\n"
        "  return <html><body><Header />{children}</body></html>;\n"
        "}\n"
    ),
    "app/globals.css": "body { margin: 0; }\n",
    "app/page.tsx": (
        'import Header from "@/components/Header";\n'
        'import { useState } from "react";\n'
        'import { db } from "@/lib/db";\n\n'
        "export default function Home() {\n  return <Header />;\n}\n"
    ),
    "app/robots.ts": "export default function robots() { return {}; }\n",
    "app/(marketing)/about/page.tsx": "export default function About() { return <p>About</p>; }\n",
    "app/blog/layout.tsx": (
        "export default function BlogLayout({ children }) { return <section>{children}</section>; }\n"
    ),
    "app/blog/[slug]/page.tsx": (
        'import { db } from "../../../lib/db";\n\n'
        "export default async function Post() { return <article />; }\n"
    ),
    "app/docs/[[...path]]/page.tsx": "export default function Docs() { return null; }\n",
    "app/@modal/default.tsx": "export default function Default() { return null; }\n",
    "app/@modal/(.)login/page.tsx": "export default function LoginModal() { return null; }\n",
    "app/login/page.tsx": "export default function Login() { return null; }\n",
    "app/_components/Button.tsx": "export function Button() { return <button />; }\n",
    "app/api/users/route.ts": USERS_ROUTE,
    "app/api/posts/[id]/route.ts": (
        "export async function GET() { return new Response('ok'); }\n"
        "export async function DELETE() { return new Response(null); }\n"
    ),
    "components/Header.tsx": (
        'import Nav from "./Nav";\n\nexport default function Header() { return <Nav />; }\n'
    ),
    "components/Nav.tsx": "export default function Nav() { return <nav />; }\n",
    "lib/db.ts": 'import { PrismaClient } from "@prisma/client";\n\nexport const db = new PrismaClient();\n',
    "lib/broken.js": "import { from 'x';\n",
}


@pytest.fixture
def full_project(make_project, sample_schema: str) -> Path:
    """App Router project using every routing convention, plus a Prisma schema."""
    files = dict(FULL_PROJECT)
    files["prisma/schema.prisma"] = sample_schema
    return make_project(files)
