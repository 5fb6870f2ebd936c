#!/usr/bin/env python3
"""Deploy helper: create default config files, folders, and systemd service for the print server."""

import argparse
import os
import subprocess
import sys
from pathlib import Path

# Folders
DIRS = ["logs"]

# Default .env template (safe defaults, edit printer address before running)
ENV_TEMPLATE = """# Receipt Print Server - Production Config

PRINTER_HOST=10.0.0.158
PRINTER_PORT=9100
PRINTER_TIMEOUT=10
MOCK_PRINTER=false
PRINTER_WIDTH_PX=576
SERVER_HOST=0.0.0.0
SERVER_PORT=3333
LOG_LEVEL=INFO
"""

# Asset files read from the project root
ASSETS = {
    "logo.png": "required",
    "footer-image-1.png": "optional",
    "divider-long.png": "optional",
    "bow.png": "gift receipts only",
}


def get_systemd_service_content(base: Path, user: str) -> str:
    """Generate systemd service file for server.py in virtual environment."""
    base_str = str(base)
    return f"""[Unit]
Description=Receipt Print Server
After=network-online.target
Wants=network-online.target

[Service]
Type=simple
User={user}
WorkingDirectory={base_str}
ExecStart={base_str}/venv/bin/python server.py
Restart=always
RestartSec=10

[Install]
WantedBy=multi-user.target
"""


def main() -> None:
    parser = argparse.ArgumentParser(description="Set up the receipt print server for production")
    parser.add_argument(
        "--install-service",
        action="store_true",
        help="Install systemd service (requires sudo)",
    )
    parser.add_argument(
        "--user",
        default=os.environ.get("SUDO_USER", os.environ.get("USER", "pi")),
        help="User to run the service (default: pi or current user)",
    )
    args = parser.parse_args()

    base = Path(__file__).resolve().parent

    for name in DIRS:
        path = base / name
        path.mkdir(exist_ok=True)
        print(f"Created directory: {path}")

    env_path = base / ".env"
    if env_path.exists():
        print(f"Config already exists: {env_path}")
    else:
        env_path.write_text(ENV_TEMPLATE, encoding="utf-8")
        print(f"Created config: {env_path}")
        print("  → Edit .env and set PRINTER_HOST before running.")

    for name, need in ASSETS.items():
        state = "found" if (base / name).is_file() else "MISSING"
        print(f"Asset {name} ({need}): {state}")

    service_content = get_systemd_service_content(base, args.user)
    service_path = base / "receipt-printer.service"
    service_path.write_text(service_content, encoding="utf-8")
    print(f"Generated systemd service: {service_path}")

    if args.install_service:
        if sys.platform != "linux":
            print("Warning: systemd install is supported on Linux only.")
        else:
            try:
                subprocess.run(
                    ["sudo", "cp", str(service_path), "/etc/systemd/system/"],
                    check=True,
                )
                subprocess.run(["sudo", "systemctl", "daemon-reload"], check=True)
                subprocess.run(["sudo", "systemctl", "enable", "receipt-printer"], check=True)
                print("Service installed and enabled. Start with: sudo systemctl start receipt-printer")
            except subprocess.CalledProcessError as e:
                print(f"Service installation failed: {e}", file=sys.stderr)
                sys.exit(1)
    else:
        print("  → To install the service: python deploy.py --install-service")


if __name__ == "__main__":
    main()
