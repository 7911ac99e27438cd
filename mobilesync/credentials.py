import os
from pathlib import Path
from dotenv import dotenv_values

CREDENTIALS_FILE = Path.home() / ".mobilesync" / "credentials"

# Keys boto3 reads from the environment.
AWS_KEYS = ("AWS_ACCESS_KEY_ID", "AWS_SECRET_ACCESS_KEY", "AWS_SESSION_TOKEN",
            "AWS_DEFAULT_REGION", "AWS_PROFILE")


def load_credentials():
    """Load credentials from ~/.mobilesync/credentials into os.environ.

    Lets users keep AWS keys for mobilesync out of their shell profile.
    Format: KEY=VALUE, one per line. Lines starting with # are comments.
    Variables already exported in the environment win.
    """
    if not CREDENTIALS_FILE.exists():
        return {}

    creds = {}
    for key, value in dotenv_values(CREDENTIALS_FILE).items():
        if value is None:
            continue
        creds[key] = value
        if key not in os.environ:
            os.environ[key] = value

    return creds


def save_credential(key, value):
    """Save or update a single credential in ~/.mobilesync/credentials."""
    CREDENTIALS_FILE.parent.mkdir(parents=True, exist_ok=True)
    CREDENTIALS_FILE.parent.chmod(0o700)

    lines = []
    found = False
    if CREDENTIALS_FILE.exists():
        for line in CREDENTIALS_FILE.read_text().splitlines():
            stripped = line.strip()
            if stripped and not stripped.startswith("#") and "=" in stripped:
                k = stripped.split("=", 1)[0].strip()
                if k == key:
                    lines.append(f"{key}={value}")
                    found = True
                    continue
            lines.append(line)

    if not found:
        lines.append(f"{key}={value}")

    CREDENTIALS_FILE.write_text("\n".join(lines) + "\n")
    CREDENTIALS_FILE.chmod(0o600)
    os.environ[key] = value


def aws_configured():
    """Return True if boto3 will find some AWS credentials without prompting."""
    if any(k in os.environ for k in ("AWS_ACCESS_KEY_ID", "AWS_PROFILE")):
        return True
    return (Path.home() / ".aws" / "credentials").exists()
