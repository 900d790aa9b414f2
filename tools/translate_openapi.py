#!/usr/bin/env python3
"""
translate_openapi.py

Incrementally translates the LINE OpenAPI YAML specs in the repository root,
writing translated copies to dist/ while preserving document structure.

Translatable elements:
  - description, summary and title fields at any depth, when the value is a
    string

Everything else (keys, schemas, examples, enums, URLs, code blocks) is kept
as-is.

Uses the public Google Translate web endpoint by default, or a LibreTranslate
server with --provider libre. Translations are cached by MD5 of the source
text in cache/translation-cache.json, and the cache is saved after every file
so an interrupted run loses nothing.

Usage:
    python translate_openapi.py                          # all files
    python translate_openapi.py --file liff.yml          # one file
    python translate_openapi.py --dry-run                # preview only
    python translate_openapi.py --no-cache               # skip cache load/save
    python translate_openapi.py --provider libre --target-lang zh
"""

import sys
import json
import time
import hashlib
import argparse
import requests
import yaml
from pathlib import Path
from typing import Any, Optional

# ── Paths ──────────────────────────────────────────────────────────────────────

SOURCE_DIR = Path(".")
OUTPUT_DIR = Path("dist")
CACHE_FILE = Path("cache") / "translation-cache.json"

YAML_FILES = (
    "channel-access-token.yml",
    "insight.yml",
    "liff.yml",
    "manage-audience.yml",
    "messaging-api.yml",
    "module.yml",
    "module-attach.yml",
    "shop.yml",
    "webhook.yml",
)

# ── Translation settings ───────────────────────────────────────────────────────

PROVIDERS = ("google", "libre")
GOOGLE_API_URL = "https://translate.googleapis.com/translate_a/single"
LIBRE_API_URL = "http://localhost:5000/translate"

SOURCE_LANG = "en"
TARGET_LANG = "zh-CN"

REQUEST_DELAY = 0.1  # seconds slept before every uncached request
REQUEST_TIMEOUT = 30
MAX_ATTEMPTS = 3

TRANSLATE_FIELDS = frozenset({"description", "summary", "title"})

# Values starting with one of these are never sent to the translator.
SKIP_PREFIXES = ("http", "```")


class TranslationError(Exception):
    """The external translation service failed or answered garbage."""


# ── Translation cache ──────────────────────────────────────────────────────────

def hash_text(text: str) -> str:
    return hashlib.md5(text.encode("utf-8")).hexdigest()


def load_cache(path: Path = CACHE_FILE) -> dict[str, str]:
    if not path.exists():
        return {}
    try:
        with open(path, encoding="utf-8") as f:
            cache = json.load(f)
    except (OSError, ValueError) as exc:
        print(f"[WARN] Cache load failed ({exc}), starting fresh.", file=sys.stderr)
        return {}
    if not isinstance(cache, dict):
        print(f"[WARN] {path} is not a JSON object, starting fresh.", file=sys.stderr)
        return {}
    entries = {k: v for k, v in cache.items() if isinstance(v, str)}
    if len(entries) != len(cache):
        print(
            f"[WARN] Dropped {len(cache) - len(entries)} non-string cache entries.",
            file=sys.stderr,
        )
    print(f"[cache] Loaded {len(entries)} cached translations.", flush=True)
    return entries


def save_cache(cache: dict[str, str], path: Path = CACHE_FILE) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(cache, f, ensure_ascii=False, indent=2)


# ── Translation API ────────────────────────────────────────────────────────────

class TranslationClient:
    """
    Thin HTTP client for a single language pair.
    translate() returns the translated text or raises TranslationError
    once all attempts are used up.
    """

    def __init__(
        self,
        provider: str = "google",
        source: str = SOURCE_LANG,
        target: str = TARGET_LANG,
        api_url: Optional[str] = None,
        timeout: float = REQUEST_TIMEOUT,
    ) -> None:
        if provider not in PROVIDERS:
            raise ValueError(f"unknown provider: {provider!r}")
        self.provider = provider
        self.source = source
        self.target = target
        self.api_url = api_url or (GOOGLE_API_URL if provider == "google" else LIBRE_API_URL)
        self.timeout = timeout

    def translate(self, text: str) -> str:
        last_exc: Optional[Exception] = None
        for attempt in range(MAX_ATTEMPTS):
            try:
                if self.provider == "google":
                    return self._google(text)
                return self._libre(text)
            except (
                requests.RequestException,
                TranslationError,
                ValueError,
                TypeError,
                AttributeError,
            ) as exc:
                last_exc = exc
                if attempt < MAX_ATTEMPTS - 1:
                    time.sleep(0.5 * (attempt + 1))
        raise TranslationError(str(last_exc)) from last_exc

    def _google(self, text: str) -> str:
        resp = requests.post(
            self.api_url,
            params={"client": "gtx", "sl": self.source, "tl": self.target, "dt": "t"},
            data={"q": text},
            timeout=self.timeout,
        )
        resp.raise_for_status()
        data = resp.json()
        # [[["translated", "original", ...], ...], null, "en", ...]
        if not isinstance(data, list) or not data or not isinstance(data[0], list):
            raise TranslationError(f"unexpected response: {str(data)[:80]}")
        parts: list[str] = []
        for seg in data[0]:
            if not isinstance(seg, list) or not seg:
                raise TranslationError(f"unexpected segment: {str(seg)[:80]}")
            if seg[0] is None:
                continue
            if not isinstance(seg[0], str):
                raise TranslationError(f"unexpected segment: {str(seg)[:80]}")
            parts.append(seg[0])
        return "".join(parts)

    def _libre(self, text: str) -> str:
        resp = requests.post(
            self.api_url,
            json={"q": text, "source": self.source, "target": self.target, "format": "text"},
            timeout=self.timeout,
        )
        resp.raise_for_status()
        data = resp.json()
        translated = data.get("translatedText") if isinstance(data, dict) else None
        if not isinstance(translated, str):
            raise TranslationError(f"unexpected response: {resp.text[:80]}")
        return translated


# ── Document walker ────────────────────────────────────────────────────────────

def is_translatable(text: Any) -> bool:
    if not isinstance(text, str) or not text.strip():
        return False
    return not text.startswith(SKIP_PREFIXES)


class FieldTranslator:
    """
    Walks a parsed YAML document and translates allow-listed string fields,
    going through the cache first. Builds a new tree; the input is not
    modified.
    """

    def __init__(
        self,
        client: TranslationClient,
        cache: dict[str, str],
        delay: float = REQUEST_DELAY,
        dry_run: bool = False,
    ) -> None:
        self._client = client
        self.cache = cache
        self.delay = delay
        self.dry_run = dry_run
        self.hits = 0
        self.translated = 0
        self.failures = 0

    def translate(self, node: Any) -> Any:
        if isinstance(node, list):
            return [self.translate(item) for item in node]
        if isinstance(node, dict):
            result = {}
            for key, value in node.items():
                if key in TRANSLATE_FIELDS and isinstance(value, str):
                    result[key] = self.translate_text(value)
                else:
                    result[key] = self.translate(value)
            return result
        return node

    def translate_text(self, text: Any) -> Any:
        if not is_translatable(text):
            return text

        key = hash_text(text)
        if key in self.cache:
            self.hits += 1
            return self.cache[key]

        if self.dry_run:
            self.translated += 1
            return f"[TR]{text}"

        time.sleep(self.delay)
        try:
            result = self._client.translate(text)
        except TranslationError as exc:
            print(f"  [WARN] Translation failed for '{text[:50]}': {exc}", file=sys.stderr)
            self.failures += 1
            return text

        self.cache[key] = result
        self.translated += 1
        print(f'  "{text[:50]}" -> "{result[:50]}"', flush=True)
        return result


# ── YAML output ────────────────────────────────────────────────────────────────

class _NoAliasDumper(yaml.SafeDumper):
    def ignore_aliases(self, data: Any) -> bool:
        return True


def dump_yaml(doc: Any) -> str:
    return yaml.dump(
        doc,
        Dumper=_NoAliasDumper,
        indent=2,
        width=float("inf"),
        allow_unicode=True,
        sort_keys=False,
        default_flow_style=False,
    )


# ── File-level processing ──────────────────────────────────────────────────────

def process_file(src: Path, dst: Path, translator: FieldTranslator, dry_run: bool = False) -> int:
    """
    Translate one file and write the result.
    Returns the count of strings newly translated for this file.
    """
    before = translator.translated
    doc = yaml.safe_load(src.read_text(encoding="utf-8"))
    result = dump_yaml(translator.translate(doc))

    if not dry_run:
        dst.parent.mkdir(parents=True, exist_ok=True)
        dst.write_text(result, encoding="utf-8")

    return translator.translated - before


def run(
    files: list[str],
    translator: FieldTranslator,
    source_dir: Path = SOURCE_DIR,
    output_dir: Path = OUTPUT_DIR,
    cache_file: Optional[Path] = CACHE_FILE,
    dry_run: bool = False,
) -> int:
    """
    Process files in order, saving the cache after each one.
    cache_file=None disables saving. Returns the number of files that failed.
    """
    initial = len(translator.cache)
    total_files = 0
    errors = 0

    for name in files:
        src = source_dir / name
        dst = output_dir / name
        print(f"Processing: {name}", flush=True)

        if not src.exists():
            print(f"  [ERROR] Not found: {src}", file=sys.stderr)
            errors += 1
            continue

        try:
            count = process_file(src, dst, translator, dry_run)
            total_files += 1
            print(f"  Done - {count} new string(s) -> {dst}", flush=True)
        except Exception as exc:
            print(f"  [ERROR] {name}: {exc}", file=sys.stderr)
            errors += 1
        finally:
            if cache_file is not None and not dry_run:
                save_cache(translator.cache, cache_file)

    print(
        f"\nDone. {total_files} file(s) processed, "
        f"{len(translator.cache) - initial} new translation(s), "
        f"{len(translator.cache)} cached in total, "
        f"{translator.failures} failed, "
        f"{errors} error(s)."
    )
    return errors


# ── Entry point ────────────────────────────────────────────────────────────────

def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Translate description/summary/title fields of OpenAPI YAML files."
    )
    parser.add_argument(
        "--file",
        action="append",
        metavar="NAME",
        help="Only process this file (relative to --source-dir). Repeatable.",
    )
    parser.add_argument("--source-dir", type=Path, default=SOURCE_DIR)
    parser.add_argument("--output-dir", type=Path, default=OUTPUT_DIR)
    parser.add_argument("--cache-file", type=Path, default=CACHE_FILE)
    parser.add_argument("--provider", choices=PROVIDERS, default="google")
    parser.add_argument(
        "--api-url",
        help="Override the translation endpoint (e.g. a remote LibreTranslate).",
    )
    parser.add_argument("--source-lang", default=SOURCE_LANG)
    parser.add_argument("--target-lang", default=TARGET_LANG)
    parser.add_argument(
        "--delay",
        type=float,
        default=REQUEST_DELAY,
        help="Seconds to wait before each uncached request (default: %(default)s).",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Walk the files and count misses without calling the API or writing files.",
    )
    parser.add_argument(
        "--no-cache",
        action="store_true",
        help="Do not load or save the translation cache.",
    )
    args = parser.parse_args(argv)

    cache = {} if args.no_cache else load_cache(args.cache_file)
    client = TranslationClient(
        args.provider,
        source=args.source_lang,
        target=args.target_lang,
        api_url=args.api_url,
    )
    translator = FieldTranslator(client, cache, delay=args.delay, dry_run=args.dry_run)

    errors = run(
        args.file or list(YAML_FILES),
        translator,
        source_dir=args.source_dir,
        output_dir=args.output_dir,
        cache_file=None if args.no_cache else args.cache_file,
        dry_run=args.dry_run,
    )
    return 1 if errors else 0


if __name__ == "__main__":
    sys.exit(main())
