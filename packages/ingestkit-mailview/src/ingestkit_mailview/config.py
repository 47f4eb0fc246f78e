"""Configuration model for the ingestkit-mailview pipeline.

Provides ``MailviewConfig`` with all tunable parameters and sensible
defaults, including the string-match tables used for tracking and
boilerplate detection.  Supports loading overrides from YAML or JSON files
via the ``from_file()`` classmethod.
"""

from __future__ import annotations

import json
import pathlib

from pydantic import BaseModel


class MailviewConfig(BaseModel):
    """All tunable parameters with sensible defaults."""

    # --- Identity ---
    parser_version: str = "ingestkit_mailview:1.0.0"

    # --- Security / Resource Limits ---
    max_file_size_mb: int = 50

    # --- Noise / Tracking Detection ---
    tracking_href_patterns: list[str] = [
        "list-manage.com",
        "campaign-archive.com",
        "mailchimpapp.net",
        "track/click",
        "track/open.php",
    ]
    tracking_image_patterns: list[str] = [
        "track/open.php",
        "cdn-images.mailchimp.com/monkey_rewards",
        "social_connect_tweet.png",
    ]
    utility_link_phrases: list[str] = [
        "view this email",
        "read in browser",
        "share on twitter",
        "share on facebook",
        "email marketing powered by mailchimp",
        "unsubscribe",
        "update your preferences",
        "add us to your address book",
    ]
    utility_block_phrases: list[str] = [
        "unsubscribe",
        "update your preferences",
        "view this email",
        "read in browser",
        "email marketing powered by mailchimp",
        "add us to your address book",
        "you are receiving this email because",
        "want to change how you receive these emails",
        "our mailing address is:",
    ]
    footer_container_patterns: list[str] = [
        "templatefooter",
        "mcnfooter",
        "mcn-footer",
        "monkey_rewards",
        "unsubscribe",
        "email-footer",
    ]

    # --- Output Cleanup ---
    boilerplate_line_phrases: list[str] = [
        "you are receiving this email because",
        "email marketing powered by mailchimp",
        "want to change how you receive these emails",
        "our mailing address is:",
    ]
    utility_line_phrases: list[str] = [
        "unsubscribe",
        "update your preferences",
    ]
    utility_exact_lines: list[str] = [
        "You can or .",
    ]

    # --- URL Policy ---
    allowed_url_schemes: list[str] = ["http", "https", "mailto"]
    max_url_length: int = 2048

    # --- Streaming ---
    stream_chunk_threshold: int = 1536

    # --- Logging / PII Safety ---
    log_sample_data: bool = False

    @classmethod
    def from_file(cls, path: str) -> MailviewConfig:
        """Load configuration from a YAML or JSON file.

        File format is detected by extension: ``.yaml`` / ``.yml`` for YAML,
        ``.json`` for JSON.  Keys present in the file override the
        corresponding defaults; keys not present retain their defaults.
        """
        file_path = pathlib.Path(path)
        if not file_path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        suffix = file_path.suffix.lower()

        if suffix in (".yaml", ".yml"):
            try:
                import yaml  # type: ignore[import-untyped]
            except ImportError as exc:
                raise ImportError(
                    "pyyaml is required to load YAML config files. "
                    "Install it with: pip install pyyaml"
                ) from exc
            with open(file_path) as fh:
                data = yaml.safe_load(fh)
        elif suffix == ".json":
            with open(file_path) as fh:
                data = json.load(fh)
        else:
            raise ValueError(
                f"Unsupported config file extension '{suffix}'. "
                "Use .yaml, .yml, or .json."
            )

        if data is None:
            data = {}

        return cls(**data)
