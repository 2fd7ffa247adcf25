#!/usr/bin/env python3
"""
Command-line client for the Vedit edit service.

Usage:
    python edit_client.py edit https://cdn.example.com/clip.mp4 colorGrade --params '{"preset": "noir"}'
    python edit_client.py edit https://cdn.example.com/photo.jpg rotate --params '{"rotation": 90}' --image
    python edit_client.py merge https://cdn.example.com/a.mp4 https://cdn.example.com/b.mp4
    python edit_client.py enhance https://cdn.example.com/clip.mp4 --mode deep
    python edit_client.py presets

Reads VEDIT_BASE_URL and VEDIT_API_KEY from the environment or a .env file.
"""

import argparse
import json
import os
import sys
import time

import requests
from dotenv import load_dotenv

# Load .env file
load_dotenv()

# Configuration
BASE_URL = os.getenv("VEDIT_BASE_URL", "http://localhost:8000")
API_KEY = os.getenv("VEDIT_API_KEY", "")
REQUEST_TIMEOUT = 1800


def _headers() -> dict:
    headers = {"Content-Type": "application/json"}
    if API_KEY:
        headers["X-Vedit-API-Key"] = API_KEY
    return headers


def _post(path: str, payload: dict) -> dict:
    response = requests.post(f"{BASE_URL}{path}", headers=_headers(), json=payload, timeout=REQUEST_TIMEOUT)
    try:
        body = response.json()
    except ValueError:
        body = {"raw": response.text}
    if response.status_code >= 400:
        print(f"\n❌ {path} failed ({response.status_code})")
        print(json.dumps(body, indent=2))
        sys.exit(1)
    return body


def submit_edit(media_url: str, operation: str, params: dict, is_image: bool) -> dict:
    """Submit one edit and print the result."""
    payload = {
        "mediaUrl": media_url,
        "instruction": {"operation": operation, "params": params},
        "isImage": is_image,
    }

    print(f"\n🚀 Submitting {operation}")
    print(f"   Media: {media_url}")
    print(f"   Params: {json.dumps(params)}")

    start = time.time()
    result = _post("/edits", payload)
    elapsed = time.time() - start

    if result.get("fallback"):
        print(f"\n⚠️  Edit failed, original media served ({elapsed:.1f}s)")
        error = result.get("error") or {}
        print(f"   Error: {error.get('code')}: {error.get('message')}")
    else:
        print(f"\n✅ Done in {elapsed:.1f}s")
    print(f"   URL: {result.get('url')}")
    for warning in result.get("warnings", []):
        print(f"   Warning: {warning}")
    return result


def submit_merge(clip_urls: list[str]) -> dict:
    print(f"\n🔗 Merging {len(clip_urls)} clips")
    result = _post("/merge", {"clipUrls": clip_urls})
    print(f"\n✅ {result.get('message')}")
    print(f"   URL: {result.get('mergedUrl')}")
    return result


def request_enhance(media_url: str, mode: str) -> dict:
    print(f"\n✨ Requesting {mode} auto-enhance suggestions")
    result = _post("/enhance/suggestions", {"mediaUrl": media_url, "mode": mode})
    print(f"\n{result.get('message')} (mode: {result.get('mode')})")
    if result.get("warning"):
        print(f"   Warning: {result['warning']}")
    for op in result.get("operations", []):
        print(f"   - {op['operation']}: {json.dumps(op.get('params', {}))}")
    return result


def list_presets() -> dict:
    response = requests.get(f"{BASE_URL}/presets", headers=_headers(), timeout=30)
    response.raise_for_status()
    presets = response.json()
    for category, names in presets.items():
        print(f"\n{category}:")
        print("   " + ", ".join(names))
    return presets


def main():
    parser = argparse.ArgumentParser(
        description="Submit edits to a running Vedit engine",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    edit_parser = subparsers.add_parser("edit", help="Apply one edit instruction")
    edit_parser.add_argument("media_url", help="Source media URL")
    edit_parser.add_argument("operation", help="Operation name, e.g. colorGrade")
    edit_parser.add_argument("--params", type=str, default="{}", help="Operation params as JSON")
    edit_parser.add_argument("--image", action="store_true", help="Source is a still image")

    merge_parser = subparsers.add_parser("merge", help="Concatenate clips in order")
    merge_parser.add_argument("clip_urls", nargs="+", help="Clip URLs (at least two)")

    enhance_parser = subparsers.add_parser("enhance", help="Get auto-enhance suggestions")
    enhance_parser.add_argument("media_url", help="Video URL")
    enhance_parser.add_argument("--mode", choices=["quick", "deep"], default="quick")

    subparsers.add_parser("presets", help="List preset names")

    args = parser.parse_args()

    if args.command == "edit":
        try:
            params = json.loads(args.params)
        except json.JSONDecodeError as e:
            parser.error(f"--params is not valid JSON: {e}")
        submit_edit(args.media_url, args.operation, params, args.image)
    elif args.command == "merge":
        submit_merge(args.clip_urls)
    elif args.command == "enhance":
        request_enhance(args.media_url, args.mode)
    else:
        list_presets()


if __name__ == "__main__":
    main()
