import argparse
import json
from pathlib import Path
from typing import Any, Dict

import requests


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Ask the QR service to generate a code and download the image."
    )
    parser.add_argument("text", help="Text to encode.")
    parser.add_argument(
        "--host",
        default="http://127.0.0.1:8080",
        help="Server host (default: http://127.0.0.1:8080).",
    )
    parser.add_argument(
        "--qr-output",
        type=Path,
        default=Path("qr_code.png"),
        help="Path to save the QR code image (default: qr_code.png).",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the payload instead of sending the request.",
    )
    return parser.parse_args()


def download_image(url: str, output_path: Path) -> None:
    response = requests.get(url, timeout=10)
    response.raise_for_status()
    output_path.write_bytes(response.content)


def main() -> None:
    args = parse_args()
    payload: Dict[str, Any] = {"text": args.text}

    if args.dry_run:
        print(json.dumps(payload, indent=2))
        return

    host = args.host.rstrip("/")
    response = requests.post(f"{host}/api/generate", json=payload, timeout=10)

    print(f"Status: {response.status_code}")
    response.raise_for_status()
    data = response.json()
    print(json.dumps(data, indent=2))

    # Prefer the path so the image is fetched from --host even behind a BASE_URL.
    image_url = f"{host}{data['url_path']}" if data.get("url_path") else data.get("url")
    if image_url:
        download_image(image_url, args.qr_output)
        print(f"Saved QR code to {args.qr_output.resolve()}")
    else:
        print("No image URL returned in response.")


if __name__ == "__main__":
    main()
