"""
Boilerplate content for scaffolded services.

Functions return file text (or JSON-ready dicts for the `.json` files); the
writers in `steward.py` decide whether a file gets written.
"""

from __future__ import annotations

import json
from typing import Any


PRIORITY_LABELS = {1: "Critical", 2: "High", 3: "Medium", 4: "Low"}

STANDARD_GITIGNORE = """# Dependencies
node_modules/
.pnpm-store/
.pnp
.pnp.js

# Build outputs
.next/
out/
dist/
build/
.turbo/
*.tsbuildinfo
next-env.d.ts

# Environment variables
.env
.env*.local
.env.production

# Testing
coverage/
test-results/
playwright-report/

# Logs
logs/
*.log
npm-debug.log*
yarn-debug.log*
yarn-error.log*

# Editors
.vscode/*
!.vscode/extensions.json
!.vscode/tasks.json
.idea/
*.swp

# OS
.DS_Store
Thumbs.db

# Agent scratch space
.agent/local/*
.agent/temp/*
.agent/cache/*
"""

# Lines that are always covered by the standard template, even when spelled
# differently in a service's own .gitignore.
GITIGNORE_COVERED_PREFIXES = ("node_modules", ".env", "dist", "build", "coverage")


def display_name(name: str) -> str:
    return f"{name[:1].upper()}{name[1:]}"


def dump_json(obj: Any) -> str:
    return json.dumps(obj, indent=2) + "\n"


def package_json(name: str, entry: dict[str, Any], package_name: str) -> dict[str, Any]:
    port = entry.get("port", 3000)
    return {
        "name": package_name,
        "version": "0.1.0",
        "description": entry.get("description", f"{display_name(name)} Service"),
        "private": True,
        "type": "module",
        "scripts": {
            "dev": f"next dev -p {port}",
            "build": "next build",
            "start": f"next start -p {port}",
            "lint": "next lint",
            "test": "vitest",
            "type-check": "tsc --noEmit",
        },
        "dependencies": {
            "next": "^14.0.0",
            "react": "^18.0.0",
            "react-dom": "^18.0.0",
        },
        "devDependencies": {
            "@types/node": "^20.0.0",
            "@types/react": "^18.0.0",
            "@types/react-dom": "^18.0.0",
            "@vitejs/plugin-react": "^4.0.0",
            "autoprefixer": "^10.4.0",
            "eslint": "^8.0.0",
            "eslint-config-next": "^14.0.0",
            "jsdom": "^24.0.0",
            "postcss": "^8.4.0",
            "tailwindcss": "^3.4.0",
            "typescript": "^5.0.0",
            "vitest": "^1.0.0",
        },
        "engines": {"node": ">=18.0.0", "pnpm": ">=8.0.0"},
    }


def agent_project_json(name: str, entry: dict[str, Any], repository: str, generated_at: str) -> dict[str, Any]:
    return {
        "name": display_name(name),
        "description": entry.get("description", f"{display_name(name)} Service"),
        "version": "0.1.0",
        "type": "service",
        "priority": entry.get("priority", 3),
        "domain": entry.get("domain"),
        "serviceType": entry.get("type", "service"),
        "port": entry.get("port", 3000),
        "framework": "next.js",
        "language": "typescript",
        "dependencies": [],
        "relatedServices": [],
        "developmentStatus": "scaffolding",
        "lastUpdated": generated_at,
        "repository": repository,
    }


def readme_md(name: str, entry: dict[str, Any]) -> str:
    title = display_name(name)
    port = entry.get("port", 3000)
    domain = entry.get("domain") or f"{name}.codai.ro"
    priority = entry.get("priority", 3)
    label = PRIORITY_LABELS.get(priority, "Low")
    return f"""# {title}

{entry.get("description", f"{title} Service")}

## Quick Start

```bash
pnpm install
pnpm dev
# http://localhost:{port}
```

## Project Structure

```
{name}/
├── app/          # Next.js App Router
├── components/   # React components
├── lib/          # Utility functions
├── public/       # Static assets
└── types/        # TypeScript definitions
```

## Stack

- Next.js 14 (App Router) with TypeScript
- Tailwind CSS
- Vitest
- pnpm

## Domain

- Production: https://{domain}
- Development: http://localhost:{port}

Priority: **{priority}** ({label})

## Status

Scaffolding complete, ready for implementation.
"""


def tsconfig_json() -> dict[str, Any]:
    return {
        "compilerOptions": {
            "lib": ["dom", "dom.iterable", "esnext"],
            "allowJs": True,
            "skipLibCheck": True,
            "strict": True,
            "noEmit": True,
            "esModuleInterop": True,
            "module": "esnext",
            "moduleResolution": "bundler",
            "resolveJsonModule": True,
            "isolatedModules": True,
            "jsx": "preserve",
            "incremental": True,
            "plugins": [{"name": "next"}],
            "baseUrl": ".",
            "paths": {"@/*": ["./*"]},
        },
        "include": ["next-env.d.ts", "**/*.ts", "**/*.tsx", ".next/types/**/*.ts"],
        "exclude": ["node_modules"],
    }


NEXT_CONFIG = """/** @type {import('next').NextConfig} */
const nextConfig = {
  reactStrictMode: true,
};

export default nextConfig;
"""

TAILWIND_CONFIG = """import type { Config } from 'tailwindcss';

const config: Config = {
  content: [
    './app/**/*.{js,ts,jsx,tsx,mdx}',
    './components/**/*.{js,ts,jsx,tsx,mdx}',
  ],
  theme: {
    extend: {},
  },
  plugins: [],
};

export default config;
"""

POSTCSS_CONFIG = """/** @type {import('postcss-load-config').Config} */
const config = {
  plugins: {
    tailwindcss: {},
    autoprefixer: {},
  },
};

export default config;
"""

ESLINT_CONFIG = """{
  "extends": ["next/core-web-vitals"]
}
"""

VITEST_CONFIG = """import { defineConfig } from 'vitest/config';
import react from '@vitejs/plugin-react';

export default defineConfig({
  plugins: [react()],
  test: {
    environment: 'jsdom',
  },
});
"""

GLOBALS_CSS = """@tailwind base;
@tailwind components;
@tailwind utilities;
"""


def app_layout_tsx(name: str, entry: dict[str, Any]) -> str:
    description = entry.get("description", f"{display_name(name)} Service").replace("'", "\\'")
    return f"""import type {{ Metadata }} from 'next';
import './globals.css';

export const metadata: Metadata = {{
  title: '{display_name(name)}',
  description: '{description}',
}};

export default function RootLayout({{
  children,
}}: Readonly<{{
  children: React.ReactNode;
}}>) {{
  return (
    <html lang="en">
      <body>{{children}}</body>
    </html>
  );
}}
"""


def app_page_tsx(name: str, entry: dict[str, Any]) -> str:
    return f"""export default function Home() {{
  return (
    <main className="flex min-h-screen flex-col items-center justify-center gap-4 p-8">
      <h1 className="text-4xl font-bold">Welcome to {display_name(name)}</h1>
      <p className="text-xl text-gray-600">{entry.get("description", "")}</p>
      <p className="text-sm text-blue-600">
        Domain: <strong>{entry.get("domain") or "n/a"}</strong> | Priority: <strong>{entry.get("priority", 3)}</strong>
      </p>
    </main>
  );
}}
"""


def scaffold_files(
    name: str,
    entry: dict[str, Any],
    package_name: str,
    repository: str,
    generated_at: str,
) -> dict[str, str]:
    """Relative path -> content for a fresh service directory."""
    return {
        "package.json": dump_json(package_json(name, entry, package_name)),
        "agent.project.json": dump_json(agent_project_json(name, entry, repository, generated_at)),
        "README.md": readme_md(name, entry),
        "tsconfig.json": dump_json(tsconfig_json()),
        "next.config.mjs": NEXT_CONFIG,
        "tailwind.config.ts": TAILWIND_CONFIG,
        "postcss.config.js": POSTCSS_CONFIG,
        ".eslintrc.json": ESLINT_CONFIG,
        "vitest.config.ts": VITEST_CONFIG,
        ".gitignore": STANDARD_GITIGNORE,
        "app/layout.tsx": app_layout_tsx(name, entry),
        "app/page.tsx": app_page_tsx(name, entry),
        "app/globals.css": GLOBALS_CSS,
        "components/.gitkeep": "",
        "lib/.gitkeep": "",
        "types/.gitkeep": "",
        "public/.gitkeep": "",
    }


def vscode_settings() -> dict[str, Any]:
    return {
        "editor.codeActionsOnSave": {"source.fixAll.eslint": "explicit"},
        "editor.formatOnSave": True,
        "editor.defaultFormatter": "esbenp.prettier-vscode",
        "files.associations": {"*.css": "tailwindcss"},
        "tailwindCSS.includeLanguages": {"typescript": "html", "typescriptreact": "html"},
        "search.exclude": {
            "**/node_modules": True,
            "**/.next": True,
            "**/dist": True,
            "**/.turbo": True,
        },
    }


def vscode_tasks(name: str) -> dict[str, Any]:
    def task(label: str, args: list[str], group: str, matcher: list[str]) -> dict[str, Any]:
        return {
            "type": "shell",
            "label": f"{name}: {label}",
            "command": "pnpm",
            "args": args,
            "group": group,
            "options": {"cwd": "${workspaceFolder}"},
            "problemMatcher": matcher,
        }

    return {
        "version": "2.0.0",
        "tasks": [
            task("Install Dependencies", ["install"], "build", []),
            task("Start Development", ["dev"], "build", []),
            task("Build Production", ["build"], "build", ["$tsc"]),
            task("Run Tests", ["test"], "test", []),
            task("Type Check", ["type-check"], "build", ["$tsc"]),
        ],
    }


def vscode_launch(name: str, port: int) -> dict[str, Any]:
    return {
        "version": "0.2.0",
        "configurations": [
            {
                "name": f"Debug {name}",
                "type": "node",
                "request": "launch",
                "program": "${workspaceFolder}/node_modules/.bin/next",
                "args": ["dev", "-p", str(port)],
                "cwd": "${workspaceFolder}",
                "skipFiles": ["<node_internals>/**"],
                "env": {"NODE_ENV": "development"},
            },
            {
                "name": f"Attach to {name}",
                "type": "node",
                "request": "attach",
                "port": 9229,
                "skipFiles": ["<node_internals>/**"],
            },
        ],
    }


def copilot_instructions_md(name: str, entry: dict[str, Any]) -> str:
    kind = entry.get("description", f"{display_name(name)} Service")
    return f"""# {display_name(name)} Service - Copilot Instructions

## Service Overview

**{kind}** - Priority {entry.get("priority", 3)} service in the Codai Ecosystem

- Domain: {entry.get("domain") or f"{name}.codai.ro"}
- Port: {entry.get("port", 3000)}
- Framework: Next.js 14 with TypeScript
- Styling: Tailwind CSS

## Working Rules

1. Follow the shared Codai design system.
2. Authenticate through logai, persist state through memorai, call central APIs through codai.
3. Keep components functional, typed, and accessible.
4. Write Vitest tests for utilities and components.

## Layout

```
{name}/
├── app/          # App Router
├── components/   # Reusable UI
├── lib/          # Utilities
├── types/        # Type definitions
└── public/       # Static assets
```
"""


def env_example(name: str, entry: dict[str, Any]) -> str:
    port = entry.get("port", 3000)
    return f"""# {name.upper()} SERVICE ENVIRONMENT VARIABLES

NODE_ENV=development
PORT={port}
NEXT_PUBLIC_APP_NAME="{display_name(name)}"
NEXT_PUBLIC_APP_URL=http://localhost:{port}

# Authentication (logai)
# LOGAI_API_URL=
# LOGAI_API_KEY=

# Memory (memorai)
# MEMORAI_API_URL=
# MEMORAI_API_KEY=

# External APIs
# OPENAI_API_KEY=
# ANTHROPIC_API_KEY=
"""


def config_files(name: str, entry: dict[str, Any]) -> dict[str, str]:
    """Relative path -> content for the editor/agent config set."""
    return {
        ".vscode/settings.json": dump_json(vscode_settings()),
        ".vscode/tasks.json": dump_json(vscode_tasks(name)),
        ".vscode/launch.json": dump_json(vscode_launch(name, int(entry.get("port", 3000)))),
        "copilot-instructions.md": copilot_instructions_md(name, entry),
        ".env.example": env_example(name, entry),
    }


# Dependency-free helpers and components; services import them from "@/components/ui".
UTILS_TS = """export type ClassValue = string | false | null | undefined;

export function cn(...inputs: ClassValue[]): string {
  return inputs.filter(Boolean).join(' ');
}
"""

BUTTON_TSX = """import * as React from 'react';
import { cn } from '@/lib/utils';

type Variant = 'default' | 'outline' | 'ghost' | 'destructive';

const variants: Record<Variant, string> = {
  default: 'bg-blue-600 text-white hover:bg-blue-700',
  outline: 'border border-gray-300 bg-transparent hover:bg-gray-100',
  ghost: 'bg-transparent hover:bg-gray-100',
  destructive: 'bg-red-600 text-white hover:bg-red-700',
};

export interface ButtonProps extends React.ButtonHTMLAttributes<HTMLButtonElement> {
  variant?: Variant;
}

const Button = React.forwardRef<HTMLButtonElement, ButtonProps>(
  ({ className, variant = 'default', ...props }, ref) => (
    <button
      ref={ref}
      className={cn(
        'inline-flex items-center justify-center rounded-md px-4 py-2 text-sm font-medium transition-colors disabled:pointer-events-none disabled:opacity-50',
        variants[variant],
        className,
      )}
      {...props}
    />
  ),
);
Button.displayName = 'Button';

export { Button };
"""

CARD_TSX = """import * as React from 'react';
import { cn } from '@/lib/utils';

const Card = React.forwardRef<HTMLDivElement, React.HTMLAttributes<HTMLDivElement>>(
  ({ className, ...props }, ref) => (
    <div ref={ref} className={cn('rounded-lg border bg-white shadow-sm', className)} {...props} />
  ),
);
Card.displayName = 'Card';

const CardHeader = React.forwardRef<HTMLDivElement, React.HTMLAttributes<HTMLDivElement>>(
  ({ className, ...props }, ref) => (
    <div ref={ref} className={cn('flex flex-col space-y-1.5 p-6', className)} {...props} />
  ),
);
CardHeader.displayName = 'CardHeader';

const CardTitle = React.forwardRef<HTMLHeadingElement, React.HTMLAttributes<HTMLHeadingElement>>(
  ({ className, ...props }, ref) => (
    <h3 ref={ref} className={cn('text-2xl font-semibold leading-none tracking-tight', className)} {...props} />
  ),
);
CardTitle.displayName = 'CardTitle';

const CardContent = React.forwardRef<HTMLDivElement, React.HTMLAttributes<HTMLDivElement>>(
  ({ className, ...props }, ref) => <div ref={ref} className={cn('p-6 pt-0', className)} {...props} />,
);
CardContent.displayName = 'CardContent';

export { Card, CardHeader, CardTitle, CardContent };
"""

INPUT_TSX = """import * as React from 'react';
import { cn } from '@/lib/utils';

export interface InputProps extends React.InputHTMLAttributes<HTMLInputElement> {}

const Input = React.forwardRef<HTMLInputElement, InputProps>(({ className, type, ...props }, ref) => (
  <input
    type={type}
    ref={ref}
    className={cn(
      'flex h-10 w-full rounded-md border border-gray-300 bg-white px-3 py-2 text-sm focus-visible:outline-none focus-visible:ring-2 disabled:cursor-not-allowed disabled:opacity-50',
      className,
    )}
    {...props}
  />
));
Input.displayName = 'Input';

export { Input };
"""

LABEL_TSX = """import * as React from 'react';
import { cn } from '@/lib/utils';

export interface LabelProps extends React.LabelHTMLAttributes<HTMLLabelElement> {}

const Label = React.forwardRef<HTMLLabelElement, LabelProps>(({ className, ...props }, ref) => (
  <label ref={ref} className={cn('text-sm font-medium leading-none', className)} {...props} />
));
Label.displayName = 'Label';

export { Label };
"""

BADGE_TSX = """import * as React from 'react';
import { cn } from '@/lib/utils';

export interface BadgeProps extends React.HTMLAttributes<HTMLSpanElement> {}

function Badge({ className, ...props }: BadgeProps) {
  return (
    <span
      className={cn('inline-flex items-center rounded-full border px-2.5 py-0.5 text-xs font-semibold', className)}
      {...props}
    />
  );
}

export { Badge };
"""

UI_INDEX_TS = """export * from './badge';
export * from './button';
export * from './card';
export * from './input';
export * from './label';
"""


def ui_component_files() -> dict[str, str]:
    return {
        "lib/utils.ts": UTILS_TS,
        "components/ui/badge.tsx": BADGE_TSX,
        "components/ui/button.tsx": BUTTON_TSX,
        "components/ui/card.tsx": CARD_TSX,
        "components/ui/input.tsx": INPUT_TSX,
        "components/ui/label.tsx": LABEL_TSX,
        "components/ui/index.ts": UI_INDEX_TS,
    }


def gitignore_needs_update(existing: str | None) -> bool:
    if existing is None:
        return True
    has_node_modules = "node_modules" in existing
    has_basic = ".env" in existing and "dist/" in existing
    return not (has_node_modules and has_basic)


def merged_gitignore(existing: str | None) -> str:
    """Standard template plus any custom, non-comment lines of the old file."""
    if not existing or not existing.strip():
        return STANDARD_GITIGNORE
    standard = {line.strip() for line in STANDARD_GITIGNORE.splitlines()}
    custom: list[str] = []
    for raw in existing.splitlines():
        line = raw.strip()
        if not line or line.startswith("#") or line in standard:
            continue
        if line.lstrip("/").startswith(GITIGNORE_COVERED_PREFIXES):
            continue
        if line not in custom:
            custom.append(line)
    if not custom:
        return STANDARD_GITIGNORE
    return STANDARD_GITIGNORE + "\n# Custom entries from existing .gitignore\n" + "\n".join(custom) + "\n"


def commit_message(name: str, entry: dict[str, Any]) -> str:
    description = entry.get("description", f"{display_name(name)} Service")
    domain = entry.get("domain")
    headline = f"{description} ({domain})" if domain else description
    features = entry.get("features") or ["Core functionality", "AI integration", "Modern UI"]
    features_text = "\n".join(f"- {f}" for f in features)
    return f"""feat: Initial scaffolding for {headline}

Next.js 14 foundation:
- App Router with TypeScript
- Tailwind CSS
- Project structure (app/, components/, lib/, types/)
- Editor tasks and environment templates
- Agent configuration (agent.project.json, copilot-instructions.md)

Priority: {entry.get("priority", 3)}
Core features:
{features_text}
"""
